import pytest

from yapl.yapl_datatypes import (
    Scope, Program, ImportDef, FunctionDef, GlobalDef, ImportDefinitionError,
)
from yapl.yapl_declarations import DeclarationLowerer
from yapl.yapl_modules import ModuleRecord


@pytest.fixture
def decl():
    return DeclarationLowerer()


@pytest.fixture
def scope():
    return Scope()


FACTORIAL = FunctionDef('fact', ['n'], [{'if': {
    'cond': ['<=', 'n', 1],
    'then': 1,
    'else': ['*', 'n', ['fact', ['-', 'n', 1]]],
}}])


def test_recursive_function(decl, scope):
    code = decl.lower_function(FACTORIAL, scope)
    assert code == "def fact(n):\n    return 1 if n <= 1 else n * fact(n - 1)"
    assert scope.resolve('fact') == 'function'
    # Parameters do not outlive the body
    assert scope.resolve('n') == 'unresolved'


def test_function_with_several_statements(decl, scope):
    fdef = FunctionDef('show', ['n'], [['print', 'n'], ['*', 'n', 2]])
    assert decl.lower_function(fdef, scope) == "def show(n):\n    print(n)\n    return n * 2"


def test_function_with_single_expression_body(decl, scope):
    fdef = FunctionDef('pick', ['a', 'b'], {'if': {'cond': 'a', 'then': 'a', 'else': 'b'}})
    assert decl.lower_function(fdef, scope) == "def pick(a, b):\n    return a if a else b"


def test_empty_function(decl, scope):
    assert decl.lower_function(FunctionDef('noop'), scope) == "def noop():\n    return None"


def test_global_is_registered_after_its_value(decl, scope):
    assert decl.lower_global(GlobalDef('base', 10), scope) == "base = 10"
    assert decl.lower_global(GlobalDef('limit', ['*', 'base', 2]), scope) == "limit = base * 2"
    # A global's own name is not yet known while its value is lowered
    assert decl.lower_global(GlobalDef('label', 'label'), scope) == "label = 'label'"
    assert scope.resolve('label') == 'global'


def test_entry_routine(decl, scope):
    assert decl.lower_entry(None, scope) == "def _yapl_main():\n    return None"
    assert decl.lower_entry([], scope) == "def _yapl_main():\n    return None"
    code = decl.lower_entry([['+', 1, 1], ['+', 2, 2], ['+', 3, 3]], scope)
    assert code == "def _yapl_main():\n    1 + 1\n    2 + 2\n    return 3 + 3"


def test_entry_single_expression(decl, scope):
    code = decl.lower_entry({'if': {'cond': True, 'then': 1, 'else': 2}}, scope)
    assert code == "def _yapl_main():\n    return 1 if True else 2"


def test_entry_top_level_let(decl, scope):
    code = decl.lower_entry([{'let': {'name': 'x', 'value': 5}}, ['*', 'x', 2]], scope)
    assert code == "def _yapl_main():\n    x = 5\n    return x * 2"
    # Trailing let returns its bound value
    code = decl.lower_entry([{'let': [{'name': 'a', 'value': 1}, {'name': 'b', 'value': ['+', 'a', 1]}]}], scope)
    assert code == "def _yapl_main():\n    a = 1\n    b = a + 1\n    return b"
    assert scope.resolve('b') == 'unresolved'


@pytest.mark.parametrize(
    "idef,expected",
    [
        (ImportDef('import', 'math', default='m'), ["import math as m"]),
        (ImportDef('import', 'math', named=['sqrt', 'pi']), ["from math import sqrt, pi"]),
        (ImportDef('import', 'os.path', default='osp', named=['join']),
         ["import os.path as osp", "from os.path import join"]),
        (ImportDef('import', 'collections', alias='coll'), ["import collections as coll"]),
        (ImportDef('import', raw='import os'), ["import os"]),
    ],
    ids=["default", "named", "default-and-named", "alias", "raw"],
)
def test_native_imports(decl, scope, idef, expected):
    assert decl.lower_import(idef, scope) == expected


def test_imported_names_become_globals(decl, scope):
    decl.lower_import(ImportDef('import', 'math', default='m', named=['sqrt']), scope)
    assert scope.resolve('m') == 'global'
    assert scope.resolve('sqrt') == 'global'


def test_native_requires(decl, scope):
    assert decl.lower_import(ImportDef('require', 'json', default='j'), scope) == [
        "j = _yapl_importlib.import_module('json')",
    ]
    assert decl.lower_import(ImportDef('require', 'json', named=['dumps', 'loads']), scope) == [
        "dumps = _yapl_importlib.import_module('json').dumps",
        "loads = _yapl_importlib.import_module('json').loads",
    ]
    assert decl.features == {'importlib'}


@pytest.mark.parametrize("kind", ['import', 'require'])
def test_alias_cannot_be_mixed(decl, scope, kind):
    with pytest.raises(ImportDefinitionError, match=f"Cannot mix default/named bindings with alias in the same {kind} statement"):
        decl.lower_import(ImportDef(kind, 'math', default='m', alias='n'), scope)
    with pytest.raises(ImportDefinitionError, match="must have at least one of: default, named, or alias"):
        decl.lower_import(ImportDef(kind, 'math'), scope)


def test_native_import_target_must_be_a_module_name(decl, scope):
    with pytest.raises(ImportDefinitionError, match="Cannot import host module"):
        decl.lower_import(ImportDef('import', 'not-a-module', default='m'), scope)


def test_subprogram_bindings(decl, scope):
    record = ModuleRecord('./lib.yapl', '/x/lib.yapl', exports=['base', 'square'])
    named = ImportDef('import', './lib.yapl', named=['square'])
    assert decl.lower_import(named, scope, record) == []
    default = ImportDef('require', './lib.yapl', default='lib')
    assert decl.lower_import(default, scope, record) == ["lib = _yapl_namespace(base=base, square=square)"]
    assert scope.resolve('lib') == 'global'
    assert decl.features == {'namespace'}


def test_program_sections_put_functions_before_globals(decl, scope):
    program = Program.from_document({
        'imports': [{'from': 'math', 'named': ['sqrt']}],
        'globals': [{'name': 'g', 'value': ['sq', 3]}],
        'functions': [{'name': 'sq', 'params': ['x'], 'body': [['*', 'x', 'x']]}],
    })
    out = decl.lower_program(program, scope)
    assert out.sections() == [
        "from math import sqrt",
        "def sq(x):\n    return x * x",
        "g = sq(3)",
    ]
    assert out.render() == "from math import sqrt\n\ndef sq(x):\n    return x * x\n\ng = sq(3)"
