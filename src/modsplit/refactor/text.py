"""Line-based text editing shared by execution, dry runs and validation."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from ..exceptions import ConflictError
from .models import TextChange


def detect_newline(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def split_lines(text: str) -> List[str]:
    """Lines without terminators. A trailing newline adds no empty line."""
    return text.splitlines()


def join_lines(lines: Sequence[str], newline: str = "\n") -> str:
    if not lines:
        return ""
    return newline.join(lines) + newline


def ordered_changes(changes: Iterable[TextChange]) -> List[Tuple[int, TextChange]]:
    """Changes with their merge sequence, sorted by position."""
    indexed = list(enumerate(changes))
    indexed.sort(key=lambda pair: (pair[1].start, 0 if pair[1].is_insertion else 1, pair[0]))
    return indexed


def check_changes(path: str, changes: Sequence[TextChange], line_count: int) -> None:
    """Reject out-of-range and overlapping ranges.

    Insertions at the boundary of a replaced range are allowed; insertions
    strictly inside one are not.

    Raises:
        ConflictError: On the first invalid change
    """
    for change in changes:
        if change.end > line_count:
            raise ConflictError(
                f"change [{change.start}, {change.end}) beyond end of {path} ({line_count} lines)",
                [path],
            )
    ranges = sorted((c.start, c.end) for c in changes if not c.is_insertion)
    for (a_start, a_end), (b_start, b_end) in zip(ranges, ranges[1:]):
        if b_start < a_end:
            raise ConflictError(
                f"overlapping changes [{a_start}, {a_end}) and [{b_start}, {b_end}) in {path}",
                [path],
            )
    for change in changes:
        if not change.is_insertion:
            continue
        for start, end in ranges:
            if start < change.start < end:
                raise ConflictError(
                    f"insertion at line {change.start} inside replaced range [{start}, {end}) in {path}",
                    [path],
                )


def apply_changes(text: str, changes: Sequence[TextChange]) -> str:
    """Apply ``changes`` bottom-to-top in one pass.

    Insertions at one position keep their merge order and land before a
    range replaced at the same position.
    """
    newline = detect_newline(text)
    lines = split_lines(text)
    keep_trailing = text.endswith(("\n", "\r")) or not text
    for _, change in reversed(ordered_changes(changes)):
        lines[change.start : change.end] = list(change.lines)
    if not lines:
        return ""
    result = newline.join(lines)
    return result + newline if keep_trailing else result
