"""Resolution of Rust paths to absolute ``lib::module::item`` segments."""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

Segments = Tuple[str, ...]


def split_path(text: str) -> Segments:
    cleaned = "".join(text.split())
    if cleaned.startswith("::"):
        cleaned = cleaned[2:]
    return tuple(s for s in cleaned.split("::") if s)


def absolutize(
    segments: Segments,
    module_segments: Segments,
    crate_names: Iterable[str],
    local_names: Iterable[str] = (),
    imports: Optional[Dict[str, Segments]] = None,
) -> Optional[Segments]:
    """Make ``segments`` absolute as seen from the module ``module_segments``.

    Returns None for paths that leave the project (``std::``, unknown
    crates) or climb above the crate root.
    """
    if not segments:
        return None
    head = segments[0]
    if head == "crate":
        return (module_segments[0],) + tuple(segments[1:])
    if head in ("self", "super"):
        base = list(module_segments)
        rest = list(segments[1:]) if head == "self" else list(segments)
        while rest and rest[0] == "super":
            if len(base) <= 1:
                return None
            base.pop()
            rest.pop(0)
        return tuple(base) + tuple(rest)
    if imports and head in imports:
        return tuple(imports[head]) + tuple(segments[1:])
    if head in set(local_names):
        return tuple(module_segments) + tuple(segments)
    if head in set(crate_names):
        return tuple(segments)
    return None


def render_path(absolute: Segments, from_crate: str) -> str:
    """Render an absolute path for use inside ``from_crate``."""
    if absolute and absolute[0] == from_crate:
        return "::".join(("crate",) + tuple(absolute[1:]))
    return "::".join(absolute)
