"""Dry-run rendering: one unified diff per ordered step, nothing written."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import List, Sequence

from .cargo import apply_cargo_change
from .models import CreateDirectory, CreateFile, DeleteFile, ModifyFile, MoveFile
from .overlay import VirtualTree
from .text import apply_changes
from .validation import Step


def _unified(before: str, after: str, old: str, new: str) -> str:
    lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=old,
        tofile=new,
    )
    rendered = []
    for line in lines:
        rendered.append(line if line.endswith("\n") else line + "\n\\ No newline at end of file\n")
    return "".join(rendered)


def render_step(step: Step, tree: VirtualTree) -> str:
    """Diff for one step, advancing ``tree`` past it."""
    action = step.action
    if isinstance(action, CreateDirectory):
        tree.mkdir(action.path)
        return f"new directory {action.path}/\n"
    if isinstance(action, CreateFile):
        tree.write(action.path, action.content)
        return _unified("", action.content, "/dev/null", f"b/{action.path}")
    if isinstance(action, ModifyFile):
        before = tree.read(action.path)
        after = apply_changes(before, action.changes)
        tree.write(action.path, after)
        return _unified(before, after, f"a/{action.path}", f"b/{action.path}")
    if isinstance(action, MoveFile):
        tree.move(action.source, action.destination)
        return f"rename from {action.source}\nrename to {action.destination}\n"
    if isinstance(action, DeleteFile):
        before = tree.read(action.path)
        tree.delete(action.path)
        return _unified(before, "", f"a/{action.path}", "/dev/null")
    # manifest edit
    before = tree.read(action.manifest)
    after = apply_cargo_change(before, action)
    tree.write(action.manifest, after)
    return _unified(before, after, f"a/{action.manifest}", f"b/{action.manifest}")


def render_diffs(steps: Sequence[Step], root: Path) -> List[str]:
    tree = VirtualTree(root)
    return [render_step(step, tree) for step in steps]
