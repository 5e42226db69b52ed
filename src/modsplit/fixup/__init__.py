"""Reference fixup: rewrite paths to moved items inside the transaction."""

from .references import FixupContext, build_fixups, map_path, rewrite_segments, rewrite_text

__all__ = ["build_fixups", "rewrite_text", "rewrite_segments", "map_path", "FixupContext"]
