"""
Path safety for modsplit.

Every path an operation touches is expressed relative to the project root
and must stay inside it after resolution.
"""

from pathlib import Path, PurePosixPath

from .exceptions import SecurityError

# Directory at the project root that holds the lock and the journal
STATE_DIR = ".modsplit"


class PathValidator:
    """
    Validates operation paths against a project root.

    Prevents:
    - Absolute paths and drive-qualified paths
    - Directory traversal (``..``) out of the root
    - Symlink escapes
    - Writes into the state directory
    """

    def __init__(self, root_dir: Path):
        self.root_dir = Path(root_dir).resolve()

    def resolve(self, rel_path: str) -> Path:
        """
        Resolve a root-relative POSIX path to an absolute filesystem path.

        Raises:
            SecurityError: If the path leaves the root or targets the state directory
        """
        pure = PurePosixPath(rel_path)
        if pure.is_absolute() or not pure.parts or ":" in pure.parts[0]:
            raise SecurityError("Operation path must be relative to the project root", Path(rel_path))
        if pure.parts and pure.parts[0] == STATE_DIR:
            raise SecurityError("Operation targets the modsplit state directory", Path(rel_path))

        candidate = self.root_dir.joinpath(*pure.parts)
        try:
            resolved = candidate.resolve()
        except (OSError, RuntimeError) as e:
            raise SecurityError(f"Cannot resolve path: {e}", candidate)

        try:
            resolved.relative_to(self.root_dir)
        except ValueError:
            raise SecurityError("Path escapes the project root", candidate)
        return candidate

    def is_safe_path(self, rel_path: str) -> bool:
        """Check a path without raising."""
        try:
            self.resolve(rel_path)
            return True
        except SecurityError:
            return False


def relative_posix(path: Path, root: Path) -> str:
    """Express ``path`` relative to ``root`` with forward slashes."""
    return Path(path).resolve().relative_to(Path(root).resolve()).as_posix()
