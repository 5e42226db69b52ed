"""Fact-table types produced by the Rust source scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .use_tree import UseStatement


class ItemKind(Enum):
    """Declared item kinds that carry code the refactor patterns can move."""

    FUNCTION = "function"
    STRUCT = "struct"
    ENUM = "enum"
    TRAIT = "trait"
    IMPL_BLOCK = "impl"
    CONST = "const"
    STATIC = "static"
    TYPE_ALIAS = "type"
    MACRO = "macro"


class DeclKind(Enum):
    """Top-level constructs that declare structure rather than code."""

    USE = "use"
    MOD = "mod"  # `mod name;`
    INLINE_MOD = "inline_mod"  # `mod name { ... }`
    EXTERN_CRATE = "extern_crate"
    FOREIGN_BLOCK = "foreign_block"  # `extern "C" { ... }`
    MACRO_CALL = "macro_call"
    INNER_ATTR = "inner_attr"  # `#![...]`
    OTHER = "other"


@dataclass(frozen=True)
class ParsedItem:
    """A top-level item with its line span (1-based, inclusive).

    ``start_line`` includes leading doc comments and attributes.
    """

    kind: ItemKind
    name: str
    visibility: str  # "" for private, else "pub", "pub(crate)", ...
    start_line: int
    end_line: int
    header_line: int  # line of the item keyword, after attributes
    header_column: int = 0
    identifiers: frozenset[str] = frozenset()
    paths: tuple[str, ...] = ()
    self_type: Optional[str] = None
    trait_name: Optional[str] = None
    shares_line: bool = False

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass(frozen=True)
class Declaration:
    kind: DeclKind
    start_line: int
    end_line: int
    header_line: int = 0
    header_column: int = 0
    name: Optional[str] = None
    visibility: str = ""
    use: Optional[UseStatement] = None
    path_attr: Optional[str] = None  # `#[path = "..."]` on a mod declaration
    shares_line: bool = False

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass(frozen=True)
class ParsedFile:
    """Everything the scanner extracted from one ``.rs`` file."""

    path: str
    line_count: int
    items: tuple[ParsedItem, ...] = ()
    declarations: tuple[Declaration, ...] = ()
    complexity: float = 1.0
    imports: dict = field(default_factory=dict)  # local name -> tuple path

    @property
    def functions(self) -> list[ParsedItem]:
        return [i for i in self.items if i.kind is ItemKind.FUNCTION]

    @property
    def mod_declarations(self) -> list[Declaration]:
        return [d for d in self.declarations if d.kind is DeclKind.MOD]

    def regions(self) -> list:
        """Items and declarations in source order."""
        return sorted(
            list(self.items) + list(self.declarations), key=lambda r: (r.start_line, r.end_line)
        )
