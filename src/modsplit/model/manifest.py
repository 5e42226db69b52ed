"""Cargo manifest reading.

Only what the model needs is extracted: package identity, library target
name, workspace members and path dependencies.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config import load_toml_file
from ..exceptions import ParsingError
from ..logging_config import get_logger
from ..security import STATE_DIR

logger = get_logger(__name__)

DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


@dataclass(frozen=True)
class Manifest:
    path: str
    package_name: Optional[str] = None
    edition: Optional[str] = None
    lib_name: Optional[str] = None
    lib_path: Optional[str] = None
    workspace_members: Optional[Tuple[str, ...]] = None  # None when there is no [workspace]
    workspace_exclude: Tuple[str, ...] = ()
    path_dependencies: Tuple[Tuple[str, str], ...] = ()

    @property
    def has_workspace(self) -> bool:
        return self.workspace_members is not None


def read_manifest(root: Path, rel_path: str) -> Manifest:
    """Parse ``rel_path`` (a Cargo.toml) below ``root``.

    Raises:
        ParsingError: If the manifest is not valid TOML
    """
    filepath = Path(root) / rel_path
    try:
        data = load_toml_file(filepath)
    except OSError as e:
        raise ParsingError(filepath, f"cannot read manifest: {e}")
    except ValueError as e:  # tomllib.TOMLDecodeError subclasses ValueError
        raise ParsingError(filepath, f"invalid TOML: {e}")
    return manifest_from_data(rel_path, data)


def manifest_from_data(rel_path: str, data: Dict[str, Any]) -> Manifest:
    package = data.get("package") or {}
    lib = data.get("lib") or {}
    workspace = data.get("workspace")

    edition = package.get("edition")
    if isinstance(edition, dict):  # edition.workspace = true
        edition = None

    members: Optional[Tuple[str, ...]] = None
    exclude: Tuple[str, ...] = ()
    if isinstance(workspace, dict):
        members = tuple(str(m) for m in workspace.get("members", []))
        exclude = tuple(str(m) for m in workspace.get("exclude", []))

    deps: List[Tuple[str, str]] = []
    seen = set()
    for table in DEPENDENCY_TABLES:
        for key, spec in (data.get(table) or {}).items():
            if isinstance(spec, dict) and "path" in spec and key not in seen:
                seen.add(key)
                deps.append((key, str(spec["path"])))

    name = package.get("name")
    return Manifest(
        path=rel_path,
        package_name=name,
        edition=edition,
        lib_name=lib.get("name") or (name.replace("-", "_") if name else None),
        lib_path=lib.get("path"),
        workspace_members=members,
        workspace_exclude=exclude,
        path_dependencies=tuple(deps),
    )


def expand_members(root: Path, manifest: Manifest) -> List[str]:
    """Expand workspace member globs into crate directories (root-relative)."""
    if not manifest.workspace_members:
        return []
    base = posixpath.dirname(manifest.path)
    excluded = {posixpath.normpath(posixpath.join(base, e)) for e in manifest.workspace_exclude}
    result: List[str] = []
    for pattern in manifest.workspace_members:
        if any(ch in pattern for ch in "*?["):
            candidates = sorted(
                p.relative_to(root).as_posix()
                for p in (Path(root) / base).glob(pattern)
                if (p / "Cargo.toml").is_file()
            )
        else:
            candidates = [posixpath.normpath(posixpath.join(base, pattern))]
        for rel in candidates:
            if rel in excluded or rel in result or rel.split("/")[0] == STATE_DIR:
                continue
            result.append(rel)
    return result
