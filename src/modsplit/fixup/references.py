"""Rewrite project references to items that moved.

Only syntactic references are touched: ``use`` declarations and qualified
paths headed by ``crate``, ``self``, ``super`` or a workspace crate's library
name. Comments and literals are masked before matching, so text inside them
is never rewritten.

A path is rewritten when its target moved without a re-export, or when the
file containing it moves so that the same text would now resolve
somewhere else (for example ``super::`` or ``crate::`` in a file that moved
to a new crate).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, List, Optional, Sequence, Tuple

from ..file_ops import read_text
from ..logging_config import get_logger
from ..model import Project
from ..model.paths import Segments, absolutize, render_path, split_path
from ..refactor.models import ModifyFile, MovedItemTable, TextChange
from ..scanning import DeclKind, UseLeaf, UseStatement, mask_source, parse_source, render_use
from ..scanning.lexer import line_offsets, offset_to_line

logger = get_logger(__name__)

_QUALIFIED = re.compile(r"(?<![\w:$])(?:r#)?[A-Za-z_]\w*(?:\s*::\s*(?:r#)?[A-Za-z_]\w*)+")
_RELATIVE_HEADS = ("crate", "self", "super")


@dataclass(frozen=True)
class FixupContext:
    """How one file sees the world before and after the transaction."""

    pre_module: Segments
    post_module: Segments
    crate_names: FrozenSet[str]
    post_crate_names: FrozenSet[str]
    table: MovedItemTable

    @property
    def post_crate(self) -> str:
        return self.post_module[0]

    @property
    def moved(self) -> bool:
        return self.pre_module != self.post_module


def map_path(absolute: Segments, table: MovedItemTable) -> Tuple[Segments, bool]:
    """Post-transaction address of ``absolute`` and whether it needs rewriting
    regardless of where the referencing file ends up."""
    hit = table.lookup_prefix(absolute)
    if hit is None:
        return absolute, False
    entry, rest = hit
    return split_path(entry.destination) + rest, not entry.reexported


def rewrite_segments(segments: Segments, ctx: FixupContext) -> Optional[Segments]:
    """New segments for a path as written in the file, or None to keep it."""
    if not segments or (segments[0] not in _RELATIVE_HEADS and segments[0] not in ctx.crate_names):
        return None
    absolute = absolutize(segments, ctx.pre_module, ctx.crate_names)
    if absolute is None:
        return None
    mapped, unexported = map_path(absolute, ctx.table)
    if absolute == ctx.pre_module[:1]:
        # the crate root itself follows the file
        mapped = ctx.post_module[:1]
    if not unexported and not ctx.moved:
        return None
    again = absolutize(segments, ctx.post_module, ctx.post_crate_names)
    if again == mapped:
        return None
    rendered = split_path(render_path(mapped, ctx.post_crate))
    return None if rendered == tuple(segments) else rendered


def _rewrite_use(statement: UseStatement, ctx: FixupContext) -> Optional[UseStatement]:
    leaves = []
    changed = False
    for leaf in statement.leaves:
        new_path = rewrite_segments(leaf.path, ctx)
        if new_path is None:
            leaves.append(leaf)
            continue
        changed = True
        alias = leaf.alias
        if alias is None and not leaf.glob and leaf.path and new_path[-1] != leaf.path[-1]:
            alias = leaf.path[-1]  # keep the local name the file uses
        leaves.append(UseLeaf(new_path, alias=alias, glob=leaf.glob))
    if not changed:
        return None
    return UseStatement(visibility=statement.visibility, leaves=tuple(leaves))


def rewrite_text(text: str, ctx: FixupContext, rel_path: str = "<memory>") -> List[TextChange]:
    """Line changes that update every stale reference in ``text``.

    Paths inside inline ``mod { }`` blocks and in statements that share a
    line with another statement are left alone.

    Raises:
        ParsingError: If the file cannot be scanned
    """
    parsed = parse_source(text, rel_path)
    masked = mask_source(text)
    lines = text.split("\n")
    masked_lines = masked.split("\n")
    changes: List[TextChange] = []
    use_lines = set()

    for decl in parsed.declarations:
        if decl.kind is not DeclKind.USE or decl.use is None:
            continue
        use_lines.update(range(decl.start_line, decl.end_line + 1))
        if decl.shares_line:
            continue
        updated = _rewrite_use(decl.use, ctx)
        if updated is None:
            continue
        first = decl.header_line - 1
        last = decl.end_line - 1
        prefix = lines[first][: decl.header_column]
        terminator = masked_lines[last].rfind(";")
        suffix = lines[last][terminator + 1 :].rstrip("\r") if terminator >= 0 else ""
        rendered = render_use(updated)
        rendered[0] = prefix + rendered[0]
        rendered[-1] = rendered[-1] + suffix
        changes.append(TextChange(first, decl.end_line, tuple(rendered)))

    offsets = line_offsets(text)
    edits: dict = {}
    for item in parsed.items:
        if item.shares_line:
            continue
        start = offsets[item.start_line - 1]
        end = offsets[item.end_line] if item.end_line < len(offsets) else len(text)
        for m in _QUALIFIED.finditer(masked, start, end):
            line = offset_to_line(offsets, m.start())
            if line in use_lines:
                continue
            segments = split_path(m.group(0))
            new = rewrite_segments(segments, ctx)
            if new is None:
                continue
            edits.setdefault(line, []).append((m.start(), m.end(), "::".join(new)))

    for line, spans in sorted(edits.items()):
        base = offsets[line - 1]
        original = lines[line - 1]
        updated = original
        for start, end, replacement in sorted(spans, reverse=True):
            updated = updated[: start - base] + replacement + updated[end - base :]
        changes.append(TextChange(line - 1, line, (updated.rstrip("\r"),)))
    return sorted(changes, key=lambda c: c.start)


def _post_path(path: str, moves: Sequence[Tuple[str, str]]) -> str:
    for source, destination in moves:
        if path == source or path.startswith(source + "/"):
            path = destination + path[len(source):]
    return path


def _post_module(segments: Segments, table: MovedItemTable) -> Segments:
    hit = table.lookup_prefix(segments)
    if hit is None:
        return segments
    entry, rest = hit
    return split_path(entry.destination) + rest


def build_fixups(
    project: Project,
    moved_items: MovedItemTable,
    moves: Sequence[Tuple[str, str]],
) -> List[ModifyFile]:
    """ModifyFile operations, on post-move paths, for every stale reference.

    Raises:
        FileAccessError: If a project file cannot be read
        ParsingError: If a project file no longer scans
    """
    if not len(moved_items) and not moves:
        return []
    crate_names = frozenset(c.lib_name for c in project.crates)
    post_names = crate_names | {split_path(e.destination)[0] for e in moved_items}

    fixups: List[ModifyFile] = []
    for _, module in project.modules():
        ctx = FixupContext(
            pre_module=module.segments,
            post_module=_post_module(module.segments, moved_items),
            crate_names=crate_names,
            post_crate_names=post_names,
            table=moved_items,
        )
        text = read_text(Path(project.root) / module.file)
        changes = rewrite_text(text, ctx, module.file)
        if not changes:
            continue
        target = _post_path(module.file, moves)
        logger.debug(f"Rewriting {len(changes)} lines of {target}")
        fixups.append(ModifyFile(target, tuple(changes)))
    return fixups

