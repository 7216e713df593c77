"""
Resolves and inlines YAPL sub-program imports.

Each `.yapl` file named by an import or require is decoded, its own
sub-program imports are resolved first, and its declarations (not its entry
point) are lowered into the compilation unit exactly once.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import yaml

from yapl.yapl_datatypes import (
    Scope, Program, ModuleResolutionError, ModuleCycleError,
)
from yapl.yapl_declarations import DeclarationLowerer
from yapl.yapl_serialize import deserialize


@dataclass
class ModuleRecord:
    requested: str
    resolved: str
    source: str = ""
    exports: List[str] = field(default_factory=list)


class ModuleResolver:
    """Per-compilation cache of inlined sub-programs, keyed by absolute path."""

    def __init__(self, declarations: DeclarationLowerer, extension: str = '.yapl',
                 emit: Optional[Callable] = None):
        self.declarations = declarations
        self.extension = extension
        self.emit = emit
        self.cache: Dict[str, ModuleRecord] = {}
        # Resolved paths in the order their code must appear.
        self.order: List[str] = []
        self._in_progress: List[str] = []

    def resolve_path(self, requested: str, base_dir: str) -> str:
        p = Path(requested).expanduser()
        if not p.is_absolute():
            p = Path(base_dir) / p
        return str(p.resolve())

    def mark_in_progress(self, path) -> None:
        """Registers the root file so a module importing it back is reported as a cycle."""
        self._in_progress.append(str(Path(path).resolve()))

    async def resolve_imports(self, program: Program, scope: Scope) -> Dict[str, ModuleRecord]:
        """Resolves every sub-program target of `program`, returning records by requested path."""
        records: Dict[str, ModuleRecord] = {}
        for idef in program.imports + program.requires:
            if idef.is_subprogram(self.extension):
                records[idef.target] = await self.resolve(idef.target, scope)
        return records

    async def resolve(self, requested: str, scope: Scope) -> ModuleRecord:
        resolved = self.resolve_path(requested, scope.base_dir)
        if resolved in self.cache:
            return self.cache[resolved]
        if resolved in self._in_progress:
            start = self._in_progress.index(resolved)
            raise ModuleCycleError(requested, resolved, self._in_progress[start:] + [resolved])

        self._in_progress.append(resolved)
        try:
            program = self._load(requested, resolved)
            module_scope = scope.overlay(str(Path(resolved).parent))
            nested = await self.resolve_imports(program, module_scope)
            declarations = self.declarations.lower_program(program, module_scope, nested)
        finally:
            self._in_progress.pop()

        body = declarations.render()
        header = f"# yapl module: {resolved}"
        record = ModuleRecord(
            requested=requested,
            resolved=resolved,
            source=f"{header}\n{body}" if body else header,
            exports=program.exported_names(),
        )
        self.cache[resolved] = record
        self.order.append(resolved)
        if self.emit:
            self.emit(['module'], f"Inlined {requested} from {resolved}")
        return record

    def _load(self, requested: str, resolved: str) -> Program:
        try:
            data = Path(resolved).read_bytes()
        except OSError as e:
            raise ModuleResolutionError(
                f"Cannot read YAPL file: {requested} (resolved to: {resolved}) - {e}", requested, resolved
            ) from e
        try:
            document = deserialize(data, path=resolved)
        except (yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ModuleResolutionError(
                f"Cannot parse YAPL file: {requested} (resolved to: {resolved}) - {e}", requested, resolved
            ) from e
        if document is not None and not isinstance(document, dict):
            raise ModuleResolutionError(
                f"YAPL file is not a program mapping: {requested} (resolved to: {resolved})", requested, resolved
            )
        return Program.from_document(document)

    def sources(self) -> List[str]:
        """Inlined module code, dependencies before dependents."""
        return [self.cache[path].source for path in self.order]
