"""Line-based Cargo.toml editing.

Edits keep the rest of the manifest byte-for-byte (comments, ordering,
formatting). Every edited manifest is re-parsed before it is accepted.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, List, Optional, Tuple

from ..config import loads_toml
from ..exceptions import ParsingError
from .models import AddDependency, AddWorkspaceMember, CargoChange, RemoveWorkspaceMember, UpdateDependencyPath
from .text import detect_newline

_TABLE_HEADER = re.compile(r"^\s*\[\[?\s*([^\]]+?)\s*\]\]?\s*(?:#.*)?$")
_DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies", "workspace.dependencies")


def apply_cargo_change(text: str, change: CargoChange) -> str:
    """Return the manifest text with ``change`` applied.

    Raises:
        ParsingError: If the result is not valid TOML or the edit target is missing
    """
    if isinstance(change, AddWorkspaceMember):
        result = _edit_members(text, change.member, add=True)
    elif isinstance(change, RemoveWorkspaceMember):
        result = _edit_members(text, change.member, add=False)
    elif isinstance(change, AddDependency):
        result = _add_dependency(text, change.manifest, change.name, change.path)
    elif isinstance(change, UpdateDependencyPath):
        result = _update_dependency_path(text, change.manifest, change.name, change.path)
    else:
        raise TypeError(f"unknown cargo change: {change!r}")
    _verify(result, change.manifest)
    return result


def _verify(text: str, manifest: str) -> None:
    try:
        loads_toml(text)
    except ValueError as e:
        raise ParsingError(Path(manifest), f"edit produced invalid TOML: {e}")


def render_toml_value(value: Any) -> str:
    """Inline TOML rendering for values copied between manifests."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_toml_value(v) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        return "{ " + ", ".join(f"{toml_key(k)} = {render_toml_value(v)}" for k, v in value.items()) + " }"
    raise TypeError(f"cannot render {type(value).__name__} as TOML")


def toml_key(name: str) -> str:
    return name if re.fullmatch(r"[A-Za-z0-9_-]+", name) else render_toml_value(name)


def _tables(lines: List[str]) -> List[Tuple[str, int, int]]:
    """(table name, header index, end index exclusive) for every table."""
    headers = []
    for idx, line in enumerate(lines):
        m = _TABLE_HEADER.match(line)
        if m and not line.lstrip().startswith("#"):
            headers.append((m.group(1).replace(" ", ""), idx))
    result = []
    for i, (name, idx) in enumerate(headers):
        end = headers[i + 1][1] if i + 1 < len(headers) else len(lines)
        result.append((name, idx, end))
    return result


def _find_table(lines: List[str], name: str) -> Optional[Tuple[int, int]]:
    for table, start, end in _tables(lines):
        if table == name:
            return start, end
    return None


def _content_end(lines: List[str], start: int, end: int) -> int:
    """Index after the last non-blank line of a table body."""
    last = start
    for idx in range(start + 1, end):
        if lines[idx].strip():
            last = idx
    return last + 1


def _join(lines: List[str], newline: str) -> str:
    return newline.join(lines) + newline if lines else ""


def _edit_members(text: str, member: str, add: bool) -> str:
    newline = detect_newline(text)
    lines = text.splitlines()
    table = _find_table(lines, "workspace")
    if table is None:
        if not add:
            return text
        body = list(lines)
        if body and body[-1].strip():
            body.append("")
        body.extend(["[workspace]", f'members = [{render_toml_value(member)}]'])
        return _join(body, newline)

    start, end = table
    key_idx = None
    for idx in range(start + 1, end):
        if re.match(r"^\s*members\s*=", lines[idx]):
            key_idx = idx
            break
    if key_idx is None:
        if not add:
            return text
        lines.insert(start + 1, f"members = [{render_toml_value(member)}]")
        return _join(lines, newline)

    close_idx = key_idx
    while "]" not in _strip_comment(lines[close_idx]) and close_idx + 1 < end:
        close_idx += 1
    block = "\n".join(_strip_comment(l) for l in lines[key_idx : close_idx + 1])
    members = re.findall(r'"((?:[^"\\]|\\.)*)"', block.split("=", 1)[1])
    if add:
        if member in members:
            return text
        members.append(member)
    else:
        if member not in members:
            return text
        members = [m for m in members if m != member]

    if close_idx == key_idx:
        rendered = [f"members = [{', '.join(render_toml_value(m) for m in members)}]"]
    else:
        rendered = ["members = ["] + [f"    {render_toml_value(m)}," for m in members] + ["]"]
    lines[key_idx : close_idx + 1] = rendered
    return _join(lines, newline)


def _strip_comment(line: str) -> str:
    in_string = False
    for idx, ch in enumerate(line):
        if ch == '"':
            in_string = not in_string
        elif ch == "#" and not in_string:
            return line[:idx]
    return line


def _add_dependency(text: str, manifest: str, name: str, path: str) -> str:
    newline = detect_newline(text)
    lines = text.splitlines()
    entry = f"{toml_key(name)} = {{ path = {render_toml_value(path)} }}"
    table = _find_table(lines, "dependencies")
    if table is None:
        if lines and lines[-1].strip():
            lines.append("")
        lines.extend(["[dependencies]", entry])
        return _join(lines, newline)

    start, end = table
    for idx in range(start + 1, end):
        if re.match(rf"^\s*{re.escape(name)}\s*=", lines[idx]) or re.match(
            rf'^\s*"{re.escape(name)}"\s*=', lines[idx]
        ):
            if f'path = {render_toml_value(path)}' in lines[idx]:
                return text
            raise ParsingError(Path(manifest), f"dependency '{name}' already declared")
    if _find_table(lines, f"dependencies.{name}") is not None:
        raise ParsingError(Path(manifest), f"dependency '{name}' already declared")
    lines.insert(_content_end(lines, start, end), entry)
    return _join(lines, newline)


def _update_dependency_path(text: str, manifest: str, name: str, path: str) -> str:
    newline = detect_newline(text)
    lines = text.splitlines()
    path_value = re.compile(r'(\bpath\s*=\s*)"(?:[^"\\]|\\.)*"')
    rendered = render_toml_value(path)
    updated = False

    for table in _DEPENDENCY_TABLES:
        bounds = _find_table(lines, table)
        if bounds is not None:
            start, end = bounds
            for idx in range(start + 1, end):
                if re.match(rf'^\s*"?{re.escape(name)}"?\s*=', lines[idx]) and path_value.search(lines[idx]):
                    lines[idx] = path_value.sub(lambda m: m.group(1) + rendered, lines[idx], count=1)
                    updated = True
        bounds = _find_table(lines, f"{table}.{name}")
        if bounds is not None:
            start, end = bounds
            for idx in range(start + 1, end):
                if re.match(r"^\s*path\s*=", lines[idx]):
                    lines[idx] = path_value.sub(lambda m: m.group(1) + rendered, lines[idx], count=1)
                    updated = True
    if not updated:
        raise ParsingError(Path(manifest), f"no path dependency named '{name}'")
    return _join(lines, newline)
