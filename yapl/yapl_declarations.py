"""
Lowers program-level declarations: imports, requires, globals, functions
and the entry routine. Expressions inside them go through the Transformer
and the Lowerer; the statement scaffolding is rendered from templates.
"""
import textwrap
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pystache

from yapl.yapl_datatypes import (
    Scope, Program, FunctionDef, GlobalDef, ImportDef, ImportDefinitionError,
    is_dotted_name,
)
from yapl.yapl_lowering import Lowerer
from yapl.yapl_transformer import YaplTransformer

ENTRY_NAME = '_yapl_main'
NAMESPACE_HELPER = '_yapl_namespace'
IMPORTLIB_HELPER = '_yapl_importlib'

FUNCTION_TEMPLATE = """def {{name}}({{params}}):
{{body}}"""

_INDENT = "    "


@dataclass
class Declarations:
    """Lowered statements of one program, grouped by section."""
    imports: List[str] = field(default_factory=list)
    requires: List[str] = field(default_factory=list)
    functions: List[str] = field(default_factory=list)
    globals: List[str] = field(default_factory=list)

    def sections(self) -> List[str]:
        """Non-empty sections in emission order; functions precede the globals that may call them."""
        parts = [
            "\n".join(self.imports),
            "\n".join(self.requires),
            "\n\n".join(self.functions),
            "\n".join(self.globals),
        ]
        return [p for p in parts if p]

    def render(self) -> str:
        return "\n\n".join(self.sections())


class DeclarationLowerer:
    def __init__(self, lowerer: Optional[Lowerer] = None, transformer: Optional[YaplTransformer] = None,
                 module_extension: str = '.yapl'):
        self.lowerer = lowerer or Lowerer()
        self.transformer = transformer or YaplTransformer()
        self.module_extension = module_extension
        self.renderer = pystache.Renderer(escape=lambda u: u)

    @property
    def features(self):
        return self.lowerer.features

    def expression(self, value: Any, scope: Scope) -> str:
        return self.lowerer.lower(self.transformer.transform(value, scope))

    def lower_program(self, program: Program, scope: Scope, modules: Optional[Dict[str, Any]] = None) -> Declarations:
        """Lowers everything except the entry point.

        Registration follows source order: import bindings, then globals
        (each after its own value), then functions (each before its body).
        `modules` maps a sub-program target to its resolved ModuleRecord.
        """
        modules = modules or {}
        out = Declarations()
        for idef in program.imports:
            out.imports.extend(self.lower_import(idef, scope, modules.get(idef.target)))
        for rdef in program.requires:
            out.requires.extend(self.lower_import(rdef, scope, modules.get(rdef.target)))
        for gdef in program.globals:
            out.globals.append(self.lower_global(gdef, scope))
        for fdef in program.functions:
            out.functions.append(self.lower_function(fdef, scope))
        return out

    # --- Globals and functions ---

    def lower_global(self, gdef: GlobalDef, scope: Scope) -> str:
        value = self.expression(gdef.value, scope)
        scope.declare_global(gdef.name)
        return f"{gdef.name} = {value}"

    def lower_function(self, fdef: FunctionDef, scope: Scope) -> str:
        scope.declare_function(fdef.name)
        with scope.with_params(fdef.params):
            statements = self.body_statements(fdef.body, scope)
        return self.render_function(fdef.name, fdef.params, statements)

    def body_statements(self, body: Any, scope: Scope) -> List[str]:
        exprs = body if isinstance(body, list) else [body]
        if not exprs:
            return ["return None"]
        codes = [self.expression(e, scope) for e in exprs]
        return codes[:-1] + [f"return {codes[-1]}"]

    def render_function(self, name: str, params: List[str], statements: List[str]) -> str:
        body = textwrap.indent("\n".join(statements), _INDENT)
        return self.renderer.render(FUNCTION_TEMPLATE, {'name': name, 'params': ", ".join(params), 'body': body})

    # --- Entry routine ---

    def lower_entry(self, main: Any, scope: Scope) -> str:
        """The synthesized entry routine.

        Top-level `let` bindings become plain assignments in the routine and
        stay resolvable for the statements after them. A trailing `let`
        returns its last bound value.
        """
        if main is None:
            statements = []
        elif isinstance(main, list):
            statements = main
        else:
            statements = [main]

        lines: List[str] = []
        trailing_binding = None
        with scope.with_params(()):
            for stmt in statements:
                if isinstance(stmt, dict) and 'let' in stmt:
                    bindings = self.transformer.let_bindings(stmt['let'], scope)
                    lines.extend(f"{b.name} = {self.lowerer.lower(b.value)}" for b in bindings)
                    trailing_binding = bindings[-1].name
                else:
                    lines.append(self.expression(stmt, scope))
                    trailing_binding = None

        if not lines:
            lines = ["return None"]
        elif trailing_binding is not None:
            lines.append(f"return {trailing_binding}")
        else:
            lines[-1] = f"return {lines[-1]}"
        return self.render_function(ENTRY_NAME, [], lines)

    # --- Imports and requires ---

    def lower_import(self, idef: ImportDef, scope: Scope, module=None) -> List[str]:
        """Statements for one import/require entry; `module` is set for sub-programs."""
        if idef.raw is not None:
            return [idef.raw]
        self._check_bindings(idef)
        if idef.is_subprogram(self.module_extension):
            return self._subprogram_binding(idef, scope, module)
        if idef.kind == 'import':
            return self._native_import(idef, scope)
        return self._native_require(idef, scope)

    def _check_bindings(self, idef: ImportDef):
        label = "import" if idef.kind == 'import' else "require"
        if idef.alias and (idef.default or idef.named):
            raise ImportDefinitionError(
                f"Cannot mix default/named bindings with alias in the same {label} statement", idef)
        if not (idef.default or idef.named or idef.alias):
            raise ImportDefinitionError(
                f"{label.capitalize()} definition must have at least one of: default, named, or alias", idef)

    def _subprogram_binding(self, idef: ImportDef, scope: Scope, module) -> List[str]:
        # Named bindings are already in scope: the module was inlined ahead of the importer
        name = idef.default or idef.alias
        if not name:
            return []
        scope.declare_global(name)
        self.features.add('namespace')
        exports = ", ".join(f"{n}={n}" for n in (module.exports if module is not None else []))
        return [f"{name} = {NAMESPACE_HELPER}({exports})"]

    def _native_import(self, idef: ImportDef, scope: Scope) -> List[str]:
        if not is_dotted_name(idef.target):
            raise ImportDefinitionError(f"Cannot import host module: {idef.target!r}", idef)
        lines = []
        if idef.default:
            lines.append(f"import {idef.target} as {scope.declare_global(idef.default)}")
        if idef.named:
            names = [scope.declare_global(n) for n in idef.named]
            lines.append(f"from {idef.target} import {', '.join(names)}")
        if idef.alias:
            lines.append(f"import {idef.target} as {scope.declare_global(idef.alias)}")
        return lines

    def _native_require(self, idef: ImportDef, scope: Scope) -> List[str]:
        self.features.add('importlib')
        module_expr = f"{IMPORTLIB_HELPER}.import_module({idef.target!r})"
        lines = []
        if idef.default:
            lines.append(f"{scope.declare_global(idef.default)} = {module_expr}")
        for n in idef.named:
            lines.append(f"{scope.declare_global(n)} = {module_expr}.{n}")
        if idef.alias:
            lines.append(f"{scope.declare_global(idef.alias)} = {module_expr}")
        return lines
