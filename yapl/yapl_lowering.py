"""
The expression lowering engine: normalized YAPL nodes to Python source.

Every handler returns the fragment together with its own precedence;
`lower` then decides whether the position it is used in needs parentheses.
"""
import math
from typing import Any, Set, Tuple

from yapl.yapl_datatypes import (
    LoweringError,
    Literal, StringLiteral, Identifier, ArrayLiteral, OperatorCall, FunctionCall,
    PropertyAccess, IfForm, WhileForm, LetForm, ReturnForm, RecordLiteral,
)
from yapl.yapl_optimizer import fold_string_concat
from yapl.yapl_precedence import (
    Precedence, OPERATOR_PRECEDENCE, PYTHON_OPERATORS, COMPARISONS, ARITY,
    arity_ok, parenthesize,
)
from yapl.yapl_printer import Printer

WHILE_HELPER = '_yapl_while'
BUILTINS = '_yapl_builtins'

Fragment = Tuple[str, int]


def literal_source(value: Any) -> Fragment:
    """Python source for a scalar, with the precedence of that source."""
    if value is None or isinstance(value, bool):
        return repr(value), Precedence.ATOM
    if isinstance(value, float) and not math.isfinite(value):
        return f"{BUILTINS}.float('{value}')", Precedence.ATOM
    if isinstance(value, (int, float)):
        code = repr(value)
        # -1 is a unary minus applied to 1, and binds like one
        return code, (Precedence.UNARY if code.startswith('-') else Precedence.ATOM)
    if isinstance(value, str):
        return repr(value), Precedence.ATOM
    raise LoweringError(f"Cannot lower: {Printer().pformat(value)}", value)


class Lowerer:
    """Lowers normalized expressions into Python source fragments."""

    def __init__(self):
        self._handlers = self._create_handlers()
        # Prelude helpers the generated code refers to.
        self.features: Set[str] = set()

    def lower(self, node: Any, required: int = Precedence.LOWEST) -> str:
        """Public entry point: source for `node`, parenthesized for a position requiring `required`."""
        code, own = self._fragment(node)
        return parenthesize(code, required, own)

    def _fragment(self, node: Any) -> Fragment:
        handler = self._handlers.get(type(node))
        if handler is None:
            raise LoweringError(f"Cannot lower: {node!r}", node)
        return handler(node)

    def _create_handlers(self):
        return {
            Literal: self._lower_literal,
            StringLiteral: self._lower_literal,
            Identifier: self._lower_identifier,
            ArrayLiteral: self._lower_array,
            RecordLiteral: self._lower_record,
            FunctionCall: self._lower_call,
            PropertyAccess: self._lower_property_access,
            OperatorCall: self._lower_operator,
            IfForm: self._lower_if,
            WhileForm: self._lower_while,
            LetForm: self._lower_let,
            ReturnForm: self._lower_return,
        }

    def _lower_args(self, args) -> str:
        return ", ".join(self.lower(arg) for arg in args)

    # --- Atoms and displays ---

    def _literal(self, value) -> Fragment:
        if isinstance(value, float) and not math.isfinite(value):
            self.features.add('builtins')
        return literal_source(value)

    def _lower_literal(self, node) -> Fragment:
        return self._literal(node.value)

    def _lower_identifier(self, node) -> Fragment:
        return node.name, Precedence.ATOM

    def _lower_array(self, node) -> Fragment:
        return f"[{self._lower_args(node.items)}]", Precedence.ATOM

    def _lower_record(self, node) -> Fragment:
        entries = [f"{self._literal(key)[0]}: {self.lower(value)}" for key, value in node.entries]
        return "{" + ", ".join(entries) + "}", Precedence.ATOM

    # --- Calls ---

    def _lower_call(self, node) -> Fragment:
        return f"{node.callee}({self._lower_args(node.args)})", Precedence.ATOM

    def _lower_property_access(self, node) -> Fragment:
        obj = self.lower(node.target, Precedence.ATOM)
        if node.attribute:
            if isinstance(node.target, Literal) and isinstance(node.target.value, (int, float)) and not obj.startswith('('):
                # `1.real` would read as a float literal
                obj = f"({obj})"
            code = f"{obj}.{node.prop}"
        else:
            code = f"{obj}[{self.lower(node.prop)}]"
        if node.args:
            code = f"{code}({self._lower_args(node.args)})"
        return code, Precedence.ATOM

    # --- Operators ---

    def _lower_operator(self, node) -> Fragment:
        op, args = node.op, node.args
        if not arity_ok(op, len(args)):
            low, high = ARITY[op]
            expected = f"{low}" if low == high else f"at least {low}"
            raise LoweringError(
                f"Operator {op} expects {expected} argument(s), got {len(args)}: {Printer().pformat(node.source)}",
                node.source,
            )
        prec = OPERATOR_PRECEDENCE[op]
        py_op = PYTHON_OPERATORS.get(op, op)

        if op in ('+', '-') and len(args) == 1:
            return f"{op}{self.lower(args[0], Precedence.UNARY)}", Precedence.UNARY

        if op == '+':
            folded = fold_string_concat(args, self.lower)
            if folded is not None:
                code, consumed = folded
                if consumed == len(args):
                    return code, Precedence.ATOM
                rest = [self.lower(arg, prec + 1) for arg in args[consumed:]]
                return " + ".join([code] + rest), prec

        if op in ('&&', '||'):
            # Both are associative, so no operand needs to bind tighter than the operator
            return f" {py_op} ".join(self.lower(arg, prec) for arg in args), prec

        if op in ('+', '-', '*', '/', '%'):
            # Left-to-right: every operand after the first binds tighter
            first = self.lower(args[0], prec)
            rest = [self.lower(arg, prec + 1) for arg in args[1:]]
            return f" {py_op} ".join([first] + rest), prec

        if op in COMPARISONS:
            # Python would chain `a < b < c`; keep each comparison binary
            left, right = (self.lower(arg, Precedence.COMPARISON + 1) for arg in args)
            return f"{left} {py_op} {right}", prec

        if op == '**':
            # Right-associative; the exponent may itself be a unary expression
            return f"{self.lower(args[0], Precedence.ATOM)} ** {self.lower(args[1], Precedence.UNARY)}", prec

        if op == '!':
            return f"not {self.lower(args[0], Precedence.NOT)}", prec

        if op == 'typeof':
            self.features.add('builtins')
            return f"{BUILTINS}.type({self.lower(args[0])}).__name__", Precedence.ATOM

        if op == 'instanceof':
            self.features.add('builtins')
            return f"{BUILTINS}.isinstance({self._lower_args(args)})", Precedence.ATOM

        raise LoweringError(f"Unknown operator: {op}", node.source)

    # --- Special forms ---

    def _lower_if(self, node) -> Fragment:
        then = self.lower(node.then, Precedence.OR)
        cond = self.lower(node.cond, Precedence.OR)
        otherwise = self.lower(node.otherwise, Precedence.CONDITIONAL)
        return f"{then} if {cond} else {otherwise}", Precedence.CONDITIONAL

    def _lower_while(self, node) -> Fragment:
        # The loop always evaluates to None; body statements run only for their effects
        self.features.add('while')
        cond = self.lower(node.cond)
        if not node.body:
            body = "None"
        elif len(node.body) == 1:
            body = self.lower(node.body[0])
        else:
            body = f"({self._lower_args(node.body)})"
        return f"{WHILE_HELPER}(lambda: {cond}, lambda: {body})", Precedence.ATOM

    def _lower_let(self, node) -> Fragment:
        # Innermost lambda evaluates to the last bound name
        code = node.bindings[-1].name
        for binding in reversed(node.bindings):
            code = f"(lambda {binding.name}: {code})({self.lower(binding.value)})"
        return code, Precedence.ATOM

    def _lower_return(self, node) -> Fragment:
        return self._fragment(node.value)
