"""Parsing and rendering of ``use`` declarations.

A use tree such as ``crate::net::{self, tcp::Stream as S, udp::*}`` is
flattened into leaves::

    UseLeaf(("crate", "net"), alias=None)          # the `self` entry
    UseLeaf(("crate", "net", "tcp", "Stream"), alias="S")
    UseLeaf(("crate", "net", "udp"), glob=True)

and can be rendered back into one ``use`` line per common prefix.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

_USE_HEAD = re.compile(
    r"^\s*(?P<vis>pub(?:\s*\([^)]*\))?\s+)?use\s+(?P<tree>.*?);?\s*$", re.DOTALL
)


@dataclass(frozen=True)
class UseLeaf:
    path: tuple[str, ...]
    alias: Optional[str] = None
    glob: bool = False

    @property
    def local_name(self) -> Optional[str]:
        """Name this leaf binds in the importing module (None for globs and `_`)."""
        if self.glob:
            return None
        name = self.alias or (self.path[-1] if self.path else None)
        return None if name == "_" else name

    def render(self) -> str:
        text = "::".join(self.path)
        if self.glob:
            return f"{text}::*" if text else "*"
        if self.alias and self.alias != (self.path[-1] if self.path else None):
            return f"{text} as {self.alias}"
        return text


@dataclass(frozen=True)
class UseStatement:
    visibility: str  # "" for private
    leaves: tuple[UseLeaf, ...]


def parse_use(text: str) -> Optional[UseStatement]:
    """Parse the text of one ``use`` declaration; None if it is not one."""
    collapsed = " ".join(text.split())
    m = _USE_HEAD.match(collapsed)
    if not m:
        return None
    vis = (m.group("vis") or "").strip()
    vis = re.sub(r"pub\s*\(", "pub(", vis)
    tree = m.group("tree").strip().rstrip(";").strip()
    try:
        leaves, pos = _parse_tree(tree, 0, ())
    except ValueError:
        return None
    if tree[pos:].strip():
        return None
    return UseStatement(visibility=vis, leaves=tuple(leaves))


def _parse_tree(text: str, pos: int, prefix: tuple[str, ...]) -> tuple[list[UseLeaf], int]:
    leaves: list[UseLeaf] = []
    segments: list[str] = []
    pos = _skip_ws(text, pos)
    if text.startswith("::", pos):
        pos += 2
    while True:
        pos = _skip_ws(text, pos)
        if pos < len(text) and text[pos] == "{":
            pos += 1
            while True:
                pos = _skip_ws(text, pos)
                if pos < len(text) and text[pos] == "}":
                    pos += 1
                    break
                sub, pos = _parse_tree(text, pos, prefix + tuple(segments))
                leaves.extend(sub)
                pos = _skip_ws(text, pos)
                if pos < len(text) and text[pos] == ",":
                    pos += 1
                    continue
                if pos < len(text) and text[pos] == "}":
                    pos += 1
                    break
                raise ValueError("unterminated use group")
            return leaves, pos
        if pos < len(text) and text[pos] == "*":
            leaves.append(UseLeaf(prefix + tuple(segments), glob=True))
            return leaves, pos + 1
        m = re.compile(r"r#\w+|\w+").match(text, pos)
        if not m:
            raise ValueError(f"unexpected token at {pos}")
        segments.append(m.group(0))
        pos = _skip_ws(text, m.end())
        if text.startswith("::", pos):
            pos += 2
            continue
        alias = None
        am = re.compile(r"as\s+(\w+)").match(text, pos)
        if am:
            alias = am.group(1)
            pos = am.end()
        path = prefix + tuple(segments)
        if segments == ["self"] and prefix:
            path = prefix
            alias = alias or prefix[-1]
        leaves.append(UseLeaf(path, alias=alias))
        return leaves, pos


def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def render_use(statement: UseStatement) -> list[str]:
    """Render a use statement, one line per distinct parent path.

    Leaves sharing a parent collapse into a brace group in first-seen order.
    """
    vis = f"{statement.visibility} " if statement.visibility else ""
    groups: "OrderedDict[tuple[str, ...], list[str]]" = OrderedDict()
    for leaf in statement.leaves:
        if leaf.glob or len(leaf.path) < 2:
            groups.setdefault(("", leaf.render()), [])
            continue
        parent = leaf.path[:-1]
        tail = UseLeaf(leaf.path[-1:], alias=leaf.alias).render()
        groups.setdefault(parent, [])
        if tail not in groups[parent]:
            groups[parent].append(tail)

    lines = []
    for parent, tails in groups.items():
        if parent[0] == "":
            lines.append(f"{vis}use {parent[1]};")
        elif len(tails) == 1:
            lines.append(f"{vis}use {'::'.join(parent)}::{tails[0]};")
        else:
            lines.append(f"{vis}use {'::'.join(parent)}::{{{', '.join(tails)}}};")
    return lines


def reexport_line(visibility: str, module: str, names: list[str]) -> str:
    """``pub use part1::{a, b};`` style line for re-exporting moved items."""
    vis = f"{visibility} " if visibility else ""
    if len(names) == 1:
        return f"{vis}use {module}::{names[0]};"
    return f"{vis}use {module}::{{{', '.join(names)}}};"
