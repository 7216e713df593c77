"""
Transforms a decoded YAPL document tree into normalized expression nodes.

All shape-sniffing lives here: whether a string is an identifier or a
string literal, whether a list is an operator call, a property access, a
function call or an array, and which mapping keys select a special form.
Identifier resolution depends on the Scope at the point of transformation,
so callers transform a definition while its parameters are bound.
"""
import re
from typing import Any, List

from yapl.yapl_datatypes import (
    Scope, LoweringError,
    Literal, StringLiteral, Identifier, ArrayLiteral, OperatorCall, FunctionCall,
    PropertyAccess, IfForm, WhileForm, Binding, LetForm, ReturnForm, RecordLiteral,
    host_reference, is_dotted_name, is_identifier_name,
)
from yapl.yapl_precedence import OPERATORS
from yapl.yapl_printer import Printer

PROPERTY_MARKER = '.'

# A head made only of operator punctuation is meant as an operator, known or not.
_OPERATOR_LIKE = re.compile(r'^[-+*/%=!<>&|^~?:@]+$')

_SCALAR_KEYS = (str, int, float, bool, type(None))


def _show(value: Any) -> str:
    return Printer().pformat(value)


class YaplTransformer:
    def transform(self, node: Any, scope: Scope) -> Any:
        match node:
            case None:
                return Literal(None)
            case bool() | int() | float():
                return Literal(node)
            case str():
                return self._string(node, scope)
            case list():
                return self._sequence(node, scope)
            case dict():
                return self._mapping(node, scope)
            case _:
                raise LoweringError(f"Cannot lower: {_show(node)}", node)

    def transform_all(self, nodes: List[Any], scope: Scope) -> List[Any]:
        return [self.transform(n, scope) for n in nodes]

    # --- Atoms ---

    def _string(self, text: str, scope: Scope):
        kind = scope.resolve(text)
        if kind != 'unresolved':
            return Identifier(text, kind)
        host = host_reference(text)
        if host is not None:
            return Identifier(host, 'host')
        return StringLiteral(text)

    def _callee(self, head: Any, scope: Scope):
        """Returns the callee name for an identifier-shaped head, else None."""
        if not isinstance(head, str):
            return None
        if scope.is_identifier(head):
            return head
        host = host_reference(head)
        if host is not None:
            return host
        if is_dotted_name(head):
            return head
        return None

    # --- Sequences ---

    def _sequence(self, items: list, scope: Scope):
        if not items:
            return ArrayLiteral([])
        head, rest = items[0], items[1:]
        if isinstance(head, str):
            if head in OPERATORS:
                return OperatorCall(head, self.transform_all(rest, scope), source=items)
            if head == PROPERTY_MARKER:
                return self._property_access(items, scope)
            if _OPERATOR_LIKE.match(head):
                raise LoweringError(f"Unknown operator: {head}", items)
        callee = self._callee(head, scope)
        if callee is not None:
            return FunctionCall(callee, self.transform_all(rest, scope))
        return ArrayLiteral(self.transform_all(items, scope))

    def _property_access(self, items: list, scope: Scope):
        operands = items[1:]
        if len(operands) < 2:
            raise LoweringError(f"Property access requires at least object and property: {_show(items)}", items)
        target = self.transform(operands[0], scope)
        prop = operands[1]
        args = self.transform_all(operands[2:], scope)
        if is_identifier_name(prop):
            return PropertyAccess(target, prop, args, attribute=True)
        return PropertyAccess(target, self.transform(prop, scope), args, attribute=False)

    # --- Mappings and special forms ---

    def _mapping(self, node: dict, scope: Scope):
        if 'if' in node:
            return self._if(node['if'], scope)
        if 'while' in node:
            return self._while(node['while'], scope)
        if 'let' in node:
            return self._let(node['let'], scope)
        if 'return' in node:
            return ReturnForm(self.transform(node['return'], scope))
        entries = []
        for key, value in node.items():
            if not isinstance(key, _SCALAR_KEYS):
                raise LoweringError(f"Cannot lower record key: {_show(key)}", node)
            entries.append((key, self.transform(value, scope)))
        return RecordLiteral(entries)

    def _if(self, form: Any, scope: Scope):
        if not isinstance(form, dict) or 'cond' not in form:
            raise LoweringError(f"Invalid if form: {_show(form)}", form)
        return IfForm(
            self.transform(form['cond'], scope),
            self.transform(form.get('then'), scope),
            self.transform(form.get('else'), scope),
        )

    def _while(self, form: Any, scope: Scope):
        if not isinstance(form, dict) or 'cond' not in form:
            raise LoweringError(f"Invalid while form: {_show(form)}", form)
        body = form.get('body')
        if body is None:
            body = []
        elif not isinstance(body, list):
            body = [body]
        return WhileForm(self.transform(form['cond'], scope), self.transform_all(body, scope))

    def _let(self, form: Any, scope: Scope):
        # Bindings are visible to later siblings but not past the form itself
        with scope.with_params(()):
            return LetForm(self.let_bindings(form, scope))

    def let_bindings(self, form: Any, scope: Scope) -> List[Binding]:
        """Normalizes the bindings of a let form, binding each name in `scope` as it goes.

        Accepts `{name, value}`, a list of those, or `{bindings: [...]}`.
        Callers that want the names to stay visible (top-level entry
        statements) call this directly instead of going through `transform`.
        """
        if isinstance(form, dict) and 'name' in form:
            raw = [form]
        elif isinstance(form, dict) and isinstance(form.get('bindings'), list):
            raw = form['bindings']
        elif isinstance(form, list):
            raw = form
        else:
            raise LoweringError(f"Invalid let form: {_show(form)}", form)
        if not raw:
            raise LoweringError("Invalid let form: no bindings", form)
        bindings = []
        for entry in raw:
            if not isinstance(entry, dict) or 'name' not in entry:
                raise LoweringError(f"Invalid let form: {_show(form)}", form)
            value = self.transform(entry.get('value'), scope)
            name = scope.bind(entry['name'])
            bindings.append(Binding(name, value))
        return bindings
