"""Text helpers shared by the file-level patterns.

Items are always moved one module level down (into a child file of the
module that declared them), which fixes how their text must change:

- ``self::`` becomes ``super::`` and ``super::`` becomes ``super::super::``
- private items become ``pub(super)`` so the parent can still name them,
  ``pub(super)`` items become ``pub(crate)``
- private fields of moved structs and private members of moved inherent
  impls become ``pub(super)`` so code left in the parent keeps compiling
"""

from __future__ import annotations

import re
from collections import OrderedDict
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..exceptions import PlanningError
from ..file_ops import read_text
from ..model import Crate, Item, Module, Project
from ..refactor.models import TextChange
from ..rules.models import Violation
from ..scanning import ItemKind, mask_source, reexport_line
from ..scanning.models import DeclKind

PART_HEADER = "use super::*;"

_RELATIVE = re.compile(r"(?<![\w:$])(self|super)(\s*::)")
_VISIBILITY = re.compile(r"pub(?:\s*\([^)]*\))?\s*")
_MEMBER_START = re.compile(
    r"(?:default\s+)?(?:(?:const|async|unsafe)\s+|extern\s+(?:\"[^\"]*\"\s+)?)*fn\b|const\s|type\s"
)
_CAMEL = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

RESERVED_STEMS = frozenset(
    "lib main mod as break const continue crate else enum extern false fn for if impl in let loop "
    "match move mut pub ref return self super static struct trait true type unsafe use where while "
    "async await dyn abstract become box do final macro override priv typeof unsized virtual yield try "
    "union".split()
)


def snake_case(name: str) -> str:
    """``HttpServer`` -> ``http_server``, ``HTTPServer`` -> ``http_server``."""
    if name.startswith("r#"):
        name = name[2:]
    return _CAMEL.sub("_", name).lower()


def source_lines(root: Path, rel_path: str) -> List[str]:
    """Lines of a project file without terminators."""
    return read_text(Path(root) / rel_path).splitlines()


def require_movable(pattern: str, items: Sequence[Item]) -> None:
    for item in items:
        if item.shares_line:
            raise PlanningError(
                pattern,
                f"'{item.name}' shares a line with another item in {item.span.file}; "
                "reformat the file first",
            )


def moved_visibility(visibility: str) -> str:
    """Visibility an item needs one module level deeper to stay reachable."""
    compact = re.sub(r"\s+", "", visibility)
    if compact in ("", "pub(self)"):
        return "pub(super)"
    if compact == "pub(super)" or compact.startswith(("pub(inself", "pub(insuper")):
        return "pub(crate)"
    return visibility


def reexport_visibility(visibility: str) -> str:
    compact = re.sub(r"\s+", "", visibility)
    return "" if compact == "pub(self)" else visibility


def _set_visibility(line: str, column: int, visibility: str) -> str:
    m = _VISIBILITY.match(line, column)
    if m:
        return line[:column] + visibility + " " + line[m.end():]
    return line[:column] + visibility + " " + line[column:]


def _body_start(masked: str, opener: str, begin: int) -> int:
    depth = 0
    for i in range(begin, len(masked)):
        ch = masked[i]
        if ch == "<":
            depth += 1
        elif ch == ">" and depth and masked[i - 1] not in "-=":
            depth -= 1
        elif depth == 0 and ch in opener:
            return i
    return -1


def _skip_attributes(masked: str, pos: int) -> int:
    while True:
        while pos < len(masked) and masked[pos].isspace():
            pos += 1
        if not masked.startswith("#[", pos):
            return pos
        depth = 0
        while pos < len(masked):
            if masked[pos] == "[":
                depth += 1
            elif masked[pos] == "]":
                depth -= 1
                if depth == 0:
                    pos += 1
                    break
            pos += 1


def _member_offsets(masked: str, header: int, kind: ItemKind, trait_name: Optional[str]) -> List[int]:
    """Offsets of private struct fields / inherent impl members."""
    keyword = re.compile(r"\b(?:struct|union|impl)\b").search(masked, header)
    begin = keyword.end() if keyword else header
    if kind is ItemKind.STRUCT:
        start = _body_start(masked, "{(;", begin)
        if start < 0 or masked[start] == ";":
            return []
        tuple_struct = masked[start] == "("
    elif kind is ItemKind.IMPL_BLOCK and trait_name is None:
        start = _body_start(masked, "{", begin)
        if start < 0:
            return []
        tuple_struct = False
    else:
        return []

    offsets: List[int] = []
    braces = parens = brackets = angles = 0
    boundary = True
    i = start + 1
    while i < len(masked):
        if boundary:
            pos = _skip_attributes(masked, i)
            rest = masked[pos:]
            if pos < len(masked) and masked[pos] not in "})" and not re.match(r"pub\b", rest):
                if kind is ItemKind.IMPL_BLOCK:
                    if _MEMBER_START.match(rest):
                        offsets.append(pos)
                elif tuple_struct or re.match(r"(?:r#)?[A-Za-z_]\w*\s*:(?!:)", rest):
                    offsets.append(pos)
            boundary = False
            i = pos
            continue
        ch = masked[i]
        nested = braces or parens or brackets or angles
        if ch == "{":
            braces += 1
        elif ch == "}":
            if not braces:
                break
            braces -= 1
            if kind is ItemKind.IMPL_BLOCK and not (braces or parens or brackets):
                boundary = True
        elif ch == "(":
            parens += 1
        elif ch == ")":
            if not parens:
                break
            parens -= 1
        elif ch == "[":
            brackets += 1
        elif ch == "]":
            brackets -= 1
        elif ch == "<" and kind is ItemKind.STRUCT:
            angles += 1
        elif ch == ">" and kind is ItemKind.STRUCT and angles and masked[i - 1] not in "-=":
            angles -= 1
        elif not nested:
            if kind is ItemKind.STRUCT and ch == ",":
                boundary = True
            elif kind is ItemKind.IMPL_BLOCK and ch == ";":
                boundary = True
        i += 1
    return offsets


def adapt_item(lines: Sequence[str], item: Item) -> List[str]:
    """Text of ``item`` ready to live one module level below its origin."""
    block = list(lines[item.span.start_line - 1 : item.span.end_line])
    text = "\n".join(block)
    masked = mask_source(text)

    header_index = item.header_line - item.span.start_line
    header = sum(len(line) + 1 for line in block[:header_index]) + item.header_column

    edits: List[Tuple[int, int, str]] = []
    for offset in _member_offsets(masked, header, item.kind, item.trait_name):
        edits.append((offset, offset, "pub(super) "))
    for m in _RELATIVE.finditer(masked):
        replacement = "super" if m.group(1) == "self" else "super::super"
        edits.append((m.start(1), m.end(1), replacement))
    for start, end, replacement in sorted(edits, reverse=True):
        text = text[:start] + replacement + text[end:]
    block = text.split("\n")

    if item.kind not in (ItemKind.IMPL_BLOCK, ItemKind.MACRO):
        target = moved_visibility(item.visibility)
        if target != item.visibility:
            # header edits come last so member offsets above stay valid
            block[header_index] = _set_visibility(block[header_index], item.header_column, target)
    return block


def part_content(blocks: Sequence[Sequence[str]]) -> str:
    """Child file text: the glob import of the parent, then the items."""
    lines = [PART_HEADER, ""]
    for index, block in enumerate(blocks):
        if index:
            lines.append("")
        lines.extend(block)
    return "\n".join(lines) + "\n"


def part_line_count(item_sizes: Sequence[int]) -> int:
    return 2 + sum(item_sizes) + max(0, len(item_sizes) - 1)


def removal_changes(lines: Sequence[str], items: Sequence[Item]) -> List[TextChange]:
    """Delete each item and one blank line following it."""
    changes = []
    claimed = set()
    for item in sorted(items, key=lambda i: i.span.start_line):
        start = item.span.start_line - 1
        end = item.span.end_line
        if end < len(lines) and not lines[end].strip() and end not in claimed:
            end += 1
        claimed.update(range(start, end))
        changes.append(TextChange(start, end, ()))
    return changes


def insertion_line(module: Module, lines: Sequence[str], kept: Sequence[Item] = ()) -> int:
    """0-based line before which new ``mod``/``use`` lines go.

    After the leading declarations (or leading ``//!`` docs), and after any
    ``macro_rules!`` that stays so the new files see those macros.
    """
    first_item = min((i.span.start_line for i in module.items), default=len(lines) + 1)
    point = 0
    for decl in module.declarations:
        if decl.start_line < first_item and decl.kind is not DeclKind.OTHER:
            point = max(point, decl.end_line)
    if point == 0:
        while point < len(lines) and lines[point].lstrip().startswith("//!"):
            point += 1
    for item in kept:
        if item.kind is ItemKind.MACRO:
            point = max(point, item.span.end_line)
    return point


def padded(lines: Sequence[str], point: int, block: Sequence[str]) -> Tuple[str, ...]:
    """``block`` with blank lines separating it from its neighbours."""
    result = list(block)
    if point > 0 and lines[point - 1].strip():
        result.insert(0, "")
    if point < len(lines) and lines[point].strip():
        result.append("")
    return tuple(result)


def reexport_lines(part: str, items: Sequence[Item]) -> List[str]:
    """One re-export per distinct visibility, names in source order."""
    by_visibility: "OrderedDict[str, List[str]]" = OrderedDict()
    for item in items:
        if item.kind is ItemKind.IMPL_BLOCK or item.kind is ItemKind.MACRO:
            continue
        names = by_visibility.setdefault(reexport_visibility(item.visibility), [])
        if item.name not in names:
            names.append(item.name)
    ordered = sorted(by_visibility.items(), key=lambda kv: kv[0] == "")
    return [reexport_line(vis, part, names) for vis, names in ordered]


def child_names(module: Module) -> set:
    return set(module.declared_names()) | {c.name for c in module.children}


def impl_blocks_for(module: Module, type_name: str) -> List[Item]:
    return [i for i in module.items if i.kind is ItemKind.IMPL_BLOCK and i.self_type == type_name]


def trait_impls_for(module: Module, trait: str) -> List[Item]:
    return [
        i
        for i in module.items
        if i.kind is ItemKind.IMPL_BLOCK and i.trait_name and i.trait_name.split("::")[-1].split("<")[0] == trait
    ]


def locate_module(pattern: str, project: Project, violation: Violation) -> Tuple[Crate, Module]:
    """The crate and module a module-level violation points at.

    Raises:
        PlanningError: If the module is no longer part of the model
    """
    location = violation.location
    found = project.module_for_file(location.file)
    if found is not None and (location.module is None or found[1].path == location.module):
        return found
    for crate, module in project.modules():
        if module.path == location.module:
            return crate, module
    raise PlanningError(pattern, f"module {location.module or location.file} not found")


def file_taken(root: Path, rel_path: str) -> bool:
    return (Path(root) / rel_path).exists()
