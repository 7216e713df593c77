"""
String-literal folding for n-ary `+`.

`['+', 'Hello, ', 'World', '!']` becomes `'Hello, World!'`, and
`['+', 'type: ', ['typeof', v], '!']` becomes an f-string. Only a leading
run of operands that always evaluate to an exact `str` is folded: `str + str`
is plain concatenation, while any other operand may define `__radd__` or
`__add__`. The rest of the chain stays a left-to-right `+`, so
`['+', 'a', 'b', x, 'c']` lowers to `'ab' + x + 'c'`.
"""
import re
from typing import Callable, List, Optional, Tuple

from yapl.yapl_datatypes import StringLiteral, OperatorCall
from yapl.yapl_precedence import Precedence

# Holes that would need quoting rules of their own inside an f-string end the run.
_UNSAFE_HOLE = re.compile(r"['\"\\{}]")


def _escape_segment(text: str) -> str:
    """Escapes literal text for the body of a single-quoted f-string."""
    escaped = text.encode('unicode_escape').decode('ascii')
    return escaped.replace("'", "\\'").replace('{', '{{').replace('}', '}}')


def is_static_str(node) -> bool:
    """True when `node` always evaluates to an exact `str`."""
    if isinstance(node, StringLiteral):
        return True
    if isinstance(node, OperatorCall):
        if node.op == 'typeof':
            return len(node.args) == 1
        if node.op == '+':
            return len(node.args) >= 2 and all(is_static_str(arg) for arg in node.args)
    return False


def fold_string_concat(operands: List, lower: Callable) -> Optional[Tuple[str, int]]:
    """Folds the leading string run of a `+` chain.

    Returns `(code, consumed)`: an atom for the first `consumed` operands.
    None when fewer than two operands can be folded.
    """
    segments: List[Tuple[str, str]] = []
    consumed = 0
    for operand in operands:
        if isinstance(operand, StringLiteral):
            if segments and segments[-1][0] == 'text':
                segments[-1] = ('text', segments[-1][1] + operand.value)
            else:
                segments.append(('text', operand.value))
        elif is_static_str(operand):
            code = lower(operand, Precedence.LOWEST)
            if _UNSAFE_HOLE.search(code):
                break
            segments.append(('hole', code))
        else:
            break
        consumed += 1

    if consumed < 2:
        return None

    if all(kind == 'text' for kind, _ in segments):
        return repr(''.join(text for _, text in segments)), consumed

    body = ''.join(
        _escape_segment(part) if kind == 'text' else '{' + part + '}'
        for kind, part in segments
    )
    return f"f'{body}'", consumed
