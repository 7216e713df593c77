# yapl_runtime.py

import json
import linecache
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Set

import yaml

from yapl.yapl_datatypes import Scope, Program, LoweringError
from yapl.yapl_declarations import DeclarationLowerer, ENTRY_NAME, NAMESPACE_HELPER, IMPORTLIB_HELPER
from yapl.yapl_lowering import Lowerer, WHILE_HELPER, BUILTINS
from yapl.yapl_modules import ModuleResolver
from yapl.yapl_printer import Printer
from yapl.yapl_serialize import deserialize
from yapl.yapl_transformer import YaplTransformer

RESULT_NAME = '_yapl_result'

# ===================================================================
# Prelude helpers
# ===================================================================

PRELUDE = {
    'builtins': f"import builtins as {BUILTINS}",
    'importlib': f"import importlib as {IMPORTLIB_HELPER}",
    'namespace': f"from types import SimpleNamespace as {NAMESPACE_HELPER}",
    'while': f"""def {WHILE_HELPER}(cond, body):
    while cond():
        body()
    return None""",
}

# Imports first, then helper definitions.
PRELUDE_ORDER = ('builtins', 'importlib', 'namespace', 'while')


def render_prelude(features: Set[str]) -> str:
    """Only the helpers the generated code actually refers to."""
    return "\n\n".join(PRELUDE[name] for name in PRELUDE_ORDER if name in features)


# ===================================================================
# Evaluation
# ===================================================================

class Evaluator:
    """Executes a generated compilation unit and returns its designated result."""

    def __init__(self, host_bindings: Optional[Dict[str, Any]] = None):
        self.host_bindings = dict(host_bindings or {})

    def evaluate(self, source: str, filename: str = '<yapl>') -> Any:
        namespace: Dict[str, Any] = {'__name__': '__yapl__'}
        namespace.update(self.host_bindings)
        # Tracebacks through generated code show its lines
        linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)
        code = compile(source, filename, 'exec')
        exec(code, namespace)
        return namespace.get(RESULT_NAME)


@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error: Optional[BaseException] = None
    source: Optional[str] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


# ===================================================================
# Transpiler
# ===================================================================

class Transpiler:
    """Decodes, lowers and evaluates YAPL programs."""

    def __init__(self, base_dir: str = '.', evaluator: Optional[Evaluator] = None,
                 host_bindings: Optional[Dict[str, Any]] = None, module_extension: str = '.yapl'):
        self.base_dir = base_dir
        self.source_dir: Optional[str] = None  # directory of the current source file, if known
        self.evaluator = evaluator or Evaluator(host_bindings)
        self.module_extension = module_extension
        self.side_effects: List[Dict] = []
        self.last_source: Optional[str] = None

    def emit(self, topics: List[str], message: str):
        self.side_effects.append({'topics': list(topics), 'message': message})

    # --- Public API ---

    async def run(self, text, *, path: Optional[str] = None) -> Any:
        """Decodes `text`, lowers it and evaluates the result."""
        self.side_effects.clear()
        document = deserialize(text, path=path)
        source = await self.transpile(document, origin=path)
        return self.execute(source)

    async def run_file(self, path) -> Any:
        p = Path(path)
        text = p.read_text(encoding='utf-8')
        saved, self.source_dir = self.source_dir, str(p.parent.resolve())
        try:
            return await self.run(text, path=str(p))
        finally:
            self.source_dir = saved

    async def transpile_file(self, path) -> str:
        p = Path(path)
        text = p.read_text(encoding='utf-8')
        saved, self.source_dir = self.source_dir, str(p.parent.resolve())
        self.side_effects.clear()
        try:
            return await self.transpile(deserialize(text, path=str(p)), origin=str(p))
        finally:
            self.source_dir = saved

    async def transpile(self, document: Any, *, origin: Optional[str] = None) -> str:
        """Lowers a decoded document (or a Program) into one Python compilation unit.

        Unit order: prelude, inlined sub-programs, imports, requires,
        functions, globals, the entry routine and finally the assignment of
        its value to the result name.
        """
        program = document if isinstance(document, Program) else Program.from_document(document)
        scope = Scope(self.source_dir or self.base_dir)
        lowerer = Lowerer()
        declarations = DeclarationLowerer(lowerer, YaplTransformer(), self.module_extension)
        resolver = ModuleResolver(declarations, self.module_extension, emit=self.emit)
        if origin is not None:
            resolver.mark_in_progress(origin)

        modules = await resolver.resolve_imports(program, scope)
        body = declarations.lower_program(program, scope, modules)
        entry = declarations.lower_entry(program.main, scope)

        parts = [render_prelude(lowerer.features)]
        parts.extend(resolver.sources())
        parts.extend(body.sections())
        parts.append(entry)
        parts.append(f"{RESULT_NAME} = {ENTRY_NAME}()")
        source = "\n\n".join(p for p in parts if p) + "\n"
        self.last_source = source
        return source

    def execute(self, source: str) -> Any:
        try:
            return self.evaluator.evaluate(source)
        except Exception:
            self.emit(['stderr'], f"Generated Python:\n{source}")
            raise

    async def handle_script(self, text, *, path: Optional[str] = None) -> ExecutionResult:
        """The main entry point to execute a script, reporting failures as data."""
        self.last_source = None
        try:
            value = await self.run(text, path=path)
        except Exception as e:
            msg = self._format_error(e)
            self.emit(['stderr'], msg)
            return ExecutionResult(
                status='error',
                error_message=msg,
                error=e,
                source=self.last_source,
                side_effects=self.side_effects,
            )
        return ExecutionResult(
            status='success',
            value=value,
            source=self.last_source,
            side_effects=self.side_effects,
        )

    def _format_error(self, e: BaseException) -> str:
        match e:
            case yaml.YAMLError() | json.JSONDecodeError():
                return f"ParseError: {e}"
            case LoweringError() if e.fragment is not None:
                return f"{type(e).__name__}: {e}\nIn {Printer().pformat(e.fragment)}"
            case _:
                return f"{type(e).__name__}: {e}"
