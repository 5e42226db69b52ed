"""
Durable file operations for modsplit.

Writes go through a temporary sibling and ``os.replace`` so that a crash
never leaves a half-written file behind.
"""

import os
import shutil
import tempfile
from pathlib import Path

from .exceptions import FileAccessError, ParsingError


def read_text(filepath: Path, encoding: str = "utf-8") -> str:
    """
    Read a source file, keeping its line endings.

    Decoding is strict: the text may be written back after edits, and a
    replacement character would silently corrupt the file.

    Raises:
        FileAccessError: If file cannot be read
        ParsingError: If the content is not valid ``encoding``
    """
    data = read_bytes(filepath)
    try:
        return data.decode(encoding)
    except UnicodeDecodeError as e:
        line = data[: e.start].count(b"\n") + 1
        raise ParsingError(Path(filepath), f"not valid {encoding} at byte {e.start}", line)


def read_bytes(filepath: Path) -> bytes:
    try:
        return Path(filepath).read_bytes()
    except OSError as e:
        raise FileAccessError(filepath, f"OS error: {e}")


def fsync_directory(directory: Path) -> None:
    """Flush directory entries (renames, creations) to disk where supported."""
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write_bytes(filepath: Path, data: bytes) -> None:
    """
    Replace ``filepath`` with ``data`` atomically.

    The parent directory must exist. OSError propagates to the caller so a
    transaction can roll back.
    """
    filepath = Path(filepath)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{filepath.name}.", suffix=".tmp", dir=filepath.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, filepath)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    fsync_directory(filepath.parent)


def atomic_write_text(filepath: Path, content: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(filepath, content.encode(encoding))


def remove_path(path: Path) -> None:
    """Delete a file or a directory tree if present."""
    path = Path(path)
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
    fsync_directory(path.parent)


def move_path(source: Path, destination: Path) -> None:
    """Rename a file or directory, creating nothing along the way."""
    if Path(destination).exists():
        raise FileExistsError(f"Destination exists: {destination}")
    os.replace(source, destination)
    fsync_directory(Path(source).parent)
    fsync_directory(Path(destination).parent)
