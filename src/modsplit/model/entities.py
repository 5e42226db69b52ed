"""Immutable project model: Project -> Crate -> Module -> Item.

All file paths are project-root-relative POSIX strings. Cross references
between items use item IDs (``module_path::name``), never object links.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from ..scanning.models import Declaration, DeclKind, ItemKind

ENTRY_FILE_NAMES = ("lib.rs", "main.rs", "mod.rs")


class CrateKind(Enum):
    LIBRARY = "library"
    BINARY = "binary"


class ModuleKind(Enum):
    FILE = "file"
    ENTRY = "entry"  # lib.rs, main.rs, mod.rs


@dataclass(frozen=True)
class Span:
    file: str
    start_line: int  # 1-based, includes doc comments and attributes
    end_line: int  # inclusive

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass(frozen=True)
class Item:
    id: str
    kind: ItemKind
    name: str
    visibility: str  # "" = private
    span: Span
    header_line: int = 0  # keyword line, after attributes
    header_column: int = 0
    references: frozenset = frozenset()
    self_type: Optional[str] = None
    trait_name: Optional[str] = None
    shares_line: bool = False

    @property
    def is_private(self) -> bool:
        return not self.visibility

    @property
    def display_visibility(self) -> str:
        return self.visibility or "private"


@dataclass(frozen=True)
class ModuleMetrics:
    function_count: int = 0
    struct_count: int = 0  # structs and enums
    line_count: int = 0
    complexity: float = 1.0


@dataclass(frozen=True)
class Module:
    """A module backed by its own file.

    ``path`` is the module's Rust path starting with the crate's library
    name, e.g. ``engine::net::tcp``.
    """

    name: str
    path: str
    file: str
    kind: ModuleKind
    items: Tuple[Item, ...] = ()
    children: Tuple["Module", ...] = ()
    declarations: Tuple[Declaration, ...] = ()
    metrics: ModuleMetrics = ModuleMetrics()

    @property
    def is_entry(self) -> bool:
        return self.kind is ModuleKind.ENTRY

    @property
    def file_name(self) -> str:
        return posixpath.basename(self.file)

    @property
    def child_dir(self) -> str:
        """Directory that holds the files of this module's children."""
        parent = posixpath.dirname(self.file)
        if self.is_entry:
            return parent
        stem = posixpath.splitext(self.file_name)[0]
        return posixpath.join(parent, stem)

    @property
    def segments(self) -> Tuple[str, ...]:
        return tuple(self.path.split("::"))

    @property
    def functions(self) -> List[Item]:
        return [i for i in self.items if i.kind is ItemKind.FUNCTION]

    def child(self, name: str) -> Optional["Module"]:
        for c in self.children:
            if c.name == name:
                return c
        return None

    def walk(self) -> Iterator["Module"]:
        """This module and all descendants, depth-first in declaration order."""
        yield self
        for c in self.children:
            yield from c.walk()

    def declared_names(self) -> List[str]:
        """Names of every ``mod`` declared here, file-backed or inline."""
        return [
            d.name
            for d in self.declarations
            if d.kind in (DeclKind.MOD, DeclKind.INLINE_MOD) and d.name
        ]

    def mod_declaration(self, name: str) -> Optional[Declaration]:
        for d in self.declarations:
            if d.kind is DeclKind.MOD and d.name == name:
                return d
        return None


@dataclass(frozen=True)
class CrateMetrics:
    module_count: int = 0  # excluding the root module
    file_count: int = 0
    line_count: int = 0
    function_count: int = 0


@dataclass(frozen=True)
class Crate:
    name: str
    lib_name: str
    root: str  # directory containing Cargo.toml ("" for the project root)
    manifest: str
    kind: CrateKind
    root_module: Module
    metrics: CrateMetrics = CrateMetrics()
    edition: Optional[str] = None
    path_dependencies: Tuple[Tuple[str, str], ...] = ()  # (dependency key, path as written)

    @property
    def modules(self) -> Iterator[Module]:
        return self.root_module.walk()

    def dependency_dirs(self) -> Dict[str, str]:
        """Dependency key -> normalized root-relative directory of the target."""
        return {
            key: posixpath.normpath(posixpath.join(self.root, path))
            for key, path in self.path_dependencies
        }


@dataclass(frozen=True)
class Project:
    root: Path
    crates: Tuple[Crate, ...] = ()
    members: Tuple[str, ...] = ()
    root_manifest: Optional[str] = "Cargo.toml"
    has_workspace: bool = False
    issues: Tuple[str, ...] = ()

    def crate(self, name: str) -> Optional[Crate]:
        for c in self.crates:
            if c.name == name or c.lib_name == name:
                return c
        return None

    def crate_at(self, directory: str) -> Optional[Crate]:
        for c in self.crates:
            if c.root == directory:
                return c
        return None

    def modules(self) -> Iterator[Tuple[Crate, Module]]:
        for c in self.crates:
            for m in c.modules:
                yield c, m

    def module_by_path(self, path: str) -> Optional[Module]:
        for _, m in self.modules():
            if m.path == path:
                return m
        return None

    def module_for_file(self, rel_path: str) -> Optional[Tuple[Crate, Module]]:
        for c, m in self.modules():
            if m.file == rel_path:
                return c, m
        return None

    def items(self) -> Dict[str, Item]:
        return {i.id: i for _, m in self.modules() for i in m.items}
