"""
Operator precedence for the generated Python source.

Levels follow the Python expression grammar, weakest to strongest. A
fragment is wrapped in parentheses iff the level required at its position
is strictly greater than its own level.
"""
from enum import IntEnum


class Precedence(IntEnum):
    LOWEST = 0          # conditional expression, lambda
    OR = 1
    AND = 2
    NOT = 3
    COMPARISON = 4
    ADDITIVE = 5
    MULTIPLICATIVE = 6
    UNARY = 7           # +x, -x
    POWER = 8
    ATOM = 9            # calls, attribute access, subscripts, displays

    CONDITIONAL = 0


COMPARISONS = ('==', '!=', '<', '>', '<=', '>=')

OPERATOR_PRECEDENCE = {
    '||': Precedence.OR,
    '&&': Precedence.AND,
    '!': Precedence.NOT,
    **{op: Precedence.COMPARISON for op in COMPARISONS},
    '+': Precedence.ADDITIVE,
    '-': Precedence.ADDITIVE,
    '*': Precedence.MULTIPLICATIVE,
    '/': Precedence.MULTIPLICATIVE,
    '%': Precedence.MULTIPLICATIVE,
    '**': Precedence.POWER,
    'typeof': Precedence.ATOM,
    'instanceof': Precedence.ATOM,
}

OPERATORS = frozenset(OPERATOR_PRECEDENCE)

# YAPL spelling -> Python spelling, where they differ.
PYTHON_OPERATORS = {'&&': 'and', '||': 'or', '!': 'not'}

# (minimum, maximum) operand count; None means unbounded.
ARITY = {
    '+': (1, None),
    '-': (1, None),
    '*': (2, None),
    '/': (2, None),
    '&&': (2, None),
    '||': (2, None),
    '%': (2, 2),
    '**': (2, 2),
    **{op: (2, 2) for op in COMPARISONS},
    'instanceof': (2, 2),
    '!': (1, 1),
    'typeof': (1, 1),
}


def parenthesize(code: str, required: int, own: int) -> str:
    """Adds parentheses when the surrounding position binds tighter than the fragment."""
    if required > own:
        return f"({code})"
    return code


def arity_ok(op: str, count: int) -> bool:
    low, high = ARITY[op]
    return count >= low and (high is None or count <= high)
