
"""
Defines the core data types for the YAPL code generator.

This module provides the program declarations decoded from a document,
the normalized expression nodes the lowering engine works with, the
Scope registry used for name resolution, and the error taxonomy.
"""

import keyword
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Iterable, Iterator, Literal as TypingLiteral, Set, Tuple

# =================================================================
# Errors
# =================================================================

class YaplError(Exception):
    """Base class for every error raised while compiling a YAPL program."""
    pass


class LoweringError(YaplError):
    """A decoded value could not be turned into Python source."""
    def __init__(self, message: str, fragment: Any = None):
        super().__init__(message)
        self.fragment = fragment


class ImportDefinitionError(LoweringError):
    """An import or require declaration has an invalid combination of bindings."""
    pass


class ModuleResolutionError(YaplError):
    def __init__(self, message: str, requested: str, resolved: Optional[str] = None):
        super().__init__(message)
        self.requested = requested
        self.resolved = resolved


class ModuleCycleError(ModuleResolutionError):
    def __init__(self, requested: str, resolved: str, chain: List[str]):
        cycle = " -> ".join(chain)
        super().__init__(f"Circular YAPL import: {requested} (resolved to: {resolved}) via {cycle}", requested, resolved)
        self.chain = chain


# =================================================================
# Names
# =================================================================

HOST_MARKER = '.'
_CONSTANT_KEYWORDS = frozenset(['True', 'False', 'None'])
# Generated helpers and the entry routine live under this prefix.
RESERVED_PREFIX = '_yapl_'

def is_identifier_name(text: Any) -> bool:
    """True for a plain Python identifier that is not a reserved keyword."""
    return isinstance(text, str) and text.isidentifier() and not keyword.iskeyword(text)

def is_dotted_name(text: Any) -> bool:
    """True for `a` or `a.b.c` where every part is a plain identifier."""
    if not isinstance(text, str) or not text:
        return False
    return all(is_identifier_name(part) for part in text.split('.'))

def host_reference(text: str) -> Optional[str]:
    """Returns the name behind an explicit host reference (`.math.pi` -> `math.pi`), else None."""
    if not text.startswith(HOST_MARKER) or len(text) == 1:
        return None
    name = text[1:]
    if name in _CONSTANT_KEYWORDS or is_dotted_name(name):
        return name
    return None


# =================================================================
# Scope registry
# =================================================================

NameKind = TypingLiteral['function', 'global', 'parameter', 'unresolved']

class Scope:
    """Tracks which names the program itself declares.

    Resolution order is parameter, then function/global, then unresolved.
    Unresolved names are not an error: they fall through to the host
    environment at evaluation time.

    Parameters are a flat set that is saved and restored around each
    function body; there is no stack of nested frames.
    """
    def __init__(self, base_dir: str = '.', functions: Optional[Set[str]] = None, globals: Optional[Set[str]] = None):
        self.functions: Set[str] = functions if functions is not None else set()
        self.globals: Set[str] = globals if globals is not None else set()
        self.params: frozenset = frozenset()
        # Directory that relative sub-program imports resolve against.
        self.base_dir = base_dir

    def declare_function(self, name: Any) -> str:
        self.functions.add(self._checked(name, "function"))
        return name

    def declare_global(self, name: Any) -> str:
        self.globals.add(self._checked(name, "global"))
        return name

    def bind(self, name: Any) -> str:
        """Adds a name to the active parameter set until the enclosing `with_params` exits."""
        self.params = self.params | {self._checked(name, "binding")}
        return name

    @contextmanager
    def with_params(self, names: Iterable[Any]) -> Iterator['Scope']:
        """Runs the block with `names` added to the parameter set, restoring the previous set afterwards."""
        saved = self.params
        self.params = saved | {self._checked(n, "parameter") for n in names}
        try:
            yield self
        finally:
            self.params = saved

    def resolve(self, name: str) -> NameKind:
        if name in self.params:
            return 'parameter'
        if name in self.functions:
            return 'function'
        if name in self.globals:
            return 'global'
        return 'unresolved'

    def is_identifier(self, name: str) -> bool:
        """True when the program itself declares `name` at this point."""
        return self.resolve(name) != 'unresolved'

    def overlay(self, base_dir: str) -> 'Scope':
        """A scope for lowering a sub-program: shared declarations, fresh parameters, its own directory."""
        return Scope(base_dir, functions=self.functions, globals=self.globals)

    def _checked(self, name: Any, what: str) -> str:
        if not is_identifier_name(name):
            raise LoweringError(f"Invalid {what} name: {name!r}", name)
        if name.startswith(RESERVED_PREFIX):
            raise LoweringError(f"Reserved {what} name: {name!r}", name)
        return name

    def __repr__(self) -> str:
        return f"<Scope functions={sorted(self.functions)} globals={sorted(self.globals)} params={sorted(self.params)}>"


# =================================================================
# Expression nodes
# =================================================================

@dataclass
class Literal:
    """A number, boolean or null."""
    value: Any


@dataclass
class StringLiteral:
    value: str


@dataclass
class Identifier:
    name: str
    kind: str  # 'function' | 'global' | 'parameter' | 'host'


@dataclass
class ArrayLiteral:
    items: List[Any]


@dataclass
class OperatorCall:
    op: str
    args: List[Any]
    source: Any = field(default=None, repr=False, compare=False)


@dataclass
class FunctionCall:
    callee: str
    args: List[Any]


@dataclass
class PropertyAccess:
    """`['.', obj, prop, *args]`. `prop` is a str when `attribute` is set, otherwise a node."""
    target: Any
    prop: Any
    args: List[Any]
    attribute: bool


@dataclass
class IfForm:
    cond: Any
    then: Any
    otherwise: Any


@dataclass
class WhileForm:
    cond: Any
    body: List[Any]


@dataclass
class Binding:
    name: str
    value: Any


@dataclass
class LetForm:
    bindings: List[Binding]


@dataclass
class ReturnForm:
    value: Any


@dataclass
class RecordLiteral:
    entries: List[Tuple[Any, Any]]


# =================================================================
# Program declarations
# =================================================================

@dataclass
class ImportDef:
    """One entry of `imports` (kind 'import') or `require` (kind 'require')."""
    kind: TypingLiteral['import', 'require']
    target: Optional[str] = None
    default: Optional[str] = None
    named: List[str] = field(default_factory=list)
    alias: Optional[str] = None
    raw: Optional[str] = None  # a bare string entry, emitted verbatim

    def is_subprogram(self, extension: str) -> bool:
        return self.raw is None and isinstance(self.target, str) and self.target.endswith(extension)


@dataclass
class FunctionDef:
    name: str
    params: List[str] = field(default_factory=list)
    body: Any = field(default_factory=list)


@dataclass
class GlobalDef:
    name: str
    value: Any = None


@dataclass
class Program:
    imports: List[ImportDef] = field(default_factory=list)
    requires: List[ImportDef] = field(default_factory=list)
    globals: List[GlobalDef] = field(default_factory=list)
    functions: List[FunctionDef] = field(default_factory=list)
    main: Any = None

    @classmethod
    def from_document(cls, document: Any) -> 'Program':
        """Builds a Program from a decoded document, checking only the declaration shapes."""
        if document is None:
            return cls()
        if not isinstance(document, dict):
            raise LoweringError("A YAPL program must be a mapping", document)
        main = document.get('main')
        if main is None:
            main = document.get('entry')
        return cls(
            imports=[_import_def('import', d) for d in _section(document, 'imports')],
            requires=[_import_def('require', d) for d in _section(document, 'require')],
            globals=[_global_def(d) for d in _section(document, 'globals')],
            functions=[_function_def(d) for d in _section(document, 'functions')],
            main=main,
        )

    def exported_names(self) -> List[str]:
        names: Dict[str, None] = {}
        for g in self.globals:
            names[g.name] = None
        for f in self.functions:
            names[f.name] = None
        return list(names)


def _section(document: dict, key: str) -> list:
    value = document.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise LoweringError(f"'{key}' must be a list", value)
    return value

def _import_def(kind: str, entry: Any) -> ImportDef:
    if isinstance(entry, str):
        return ImportDef(kind, raw=entry)
    key = 'from' if kind == 'import' else 'module'
    if not isinstance(entry, dict) or not isinstance(entry.get(key), str):
        label = "Import" if kind == 'import' else "Require"
        raise ImportDefinitionError(f'{label} definition must have a "{key}" property', entry)
    named = entry.get('named') or []
    if not isinstance(named, list):
        raise ImportDefinitionError("'named' must be a list of names", entry)
    return ImportDef(kind, entry[key], entry.get('default'), list(named), entry.get('alias'))

def _global_def(entry: Any) -> GlobalDef:
    if not isinstance(entry, dict) or 'name' not in entry:
        raise LoweringError("Global definition must have a 'name'", entry)
    return GlobalDef(entry['name'], entry.get('value'))

def _function_def(entry: Any) -> FunctionDef:
    if not isinstance(entry, dict) or 'name' not in entry:
        raise LoweringError("Function definition must have a 'name'", entry)
    params = entry.get('params') or []
    if not isinstance(params, list):
        raise LoweringError(f"Parameters of '{entry['name']}' must be a list", params)
    body = entry.get('body')
    return FunctionDef(entry['name'], list(params), [] if body is None else body)
