import pytest

from yapl.yapl_datatypes import Scope
from yapl.yapl_lowering import Lowerer
from yapl.yapl_transformer import YaplTransformer


@pytest.fixture
def lowerer():
    return Lowerer()


@pytest.fixture
def lower(lowerer):
    def _lower(value, params=()):
        scope = Scope()
        with scope.with_params(params):
            node = YaplTransformer().transform(value, scope)
        return lowerer.lower(node)
    return _lower


def _if(cond, then, otherwise):
    return {'if': {'cond': cond, 'then': then, 'else': otherwise}}


def test_if_lowers_to_conditional_expression(lower):
    assert lower(_if(['<', 5, 10], 'yes', 'no')) == "'yes' if 5 < 10 else 'no'"


def test_if_without_else(lower):
    assert lower({'if': {'cond': True, 'then': 1}}) == "1 if True else None"


def test_if_chain_in_else_needs_no_parentheses(lower):
    value = _if('a', 1, _if('b', 2, 3))
    assert lower(value, params=['a', 'b']) == "1 if a else 2 if b else 3"


def test_if_in_condition_or_operand_position_is_wrapped(lower):
    inner = _if('a', 'b', False)
    assert lower(_if(inner, 1, 2), params=['a', 'b']) == "1 if (b if a else False) else 2"
    assert lower(_if('a', inner, 2), params=['a', 'b']) == "(b if a else False) if a else 2"
    assert lower(['+', 1, _if('a', 2, 3)], params=['a']) == "1 + (2 if a else 3)"
    assert lower(['f', _if('a', 2, 3)], params=['a']) == "f(2 if a else 3)"


def test_if_condition_with_logic(lower):
    value = _if(['&&', 'a', ['!', 'b']], 1, 0)
    assert lower(value, params=['a', 'b']) == "1 if a and not b else 0"


def test_while_uses_helper(lower, lowerer):
    value = {'while': {
        'cond': ['<', ['len', 'items'], 3],
        'body': [['.', 'items', 'append', 1]],
    }}
    assert lower(value, params=['items']) == "_yapl_while(lambda: len(items) < 3, lambda: items.append(1))"
    assert lowerer.features == {'while'}


def test_while_with_several_statements(lower):
    value = {'while': {'cond': True, 'body': [['f', 1], ['g', 2]]}}
    assert lower(value) == "_yapl_while(lambda: True, lambda: (f(1), g(2)))"


def test_while_without_body(lower):
    assert lower({'while': {'cond': False}}) == "_yapl_while(lambda: False, lambda: None)"


def test_let_single_binding(lower):
    assert lower({'let': {'name': 'x', 'value': 5}}) == "(lambda x: x)(5)"


def test_let_bindings_nest_in_order(lower):
    value = {'let': [
        {'name': 'a', 'value': 1},
        {'name': 'b', 'value': ['+', 'a', 1]},
    ]}
    assert lower(value) == "(lambda a: (lambda b: b)(a + 1))(1)"


def test_let_sees_enclosing_parameters(lower):
    value = {'let': {'name': 'y', 'value': ['*', 'n', 2]}}
    assert lower(value, params=['n']) == "(lambda y: y)(n * 2)"


def test_let_as_operand(lower):
    assert lower(['*', {'let': {'name': 'x', 'value': 2}}, 3]) == "(lambda x: x)(2) * 3"


def test_let_binding_does_not_leak_to_siblings(lower):
    value = [{'let': {'name': 'x', 'value': 1}}, 'x']
    # The second item is a plain string again once the let form is done
    assert lower(value) == "[(lambda x: x)(1), 'x']"
