"""Lightweight Rust source scanning: masking, item extraction, use trees."""

from .lexer import line_offsets, mask_source, offset_to_line
from .models import Declaration, DeclKind, ItemKind, ParsedFile, ParsedItem
from .rust_parser import count_lines, parse_file, parse_source
from .use_tree import UseLeaf, UseStatement, parse_use, reexport_line, render_use

__all__ = [
    "mask_source",
    "line_offsets",
    "offset_to_line",
    "ItemKind",
    "DeclKind",
    "ParsedItem",
    "Declaration",
    "ParsedFile",
    "parse_source",
    "parse_file",
    "count_lines",
    "UseLeaf",
    "UseStatement",
    "parse_use",
    "render_use",
    "reexport_line",
]
