"""Comment and literal masking for Rust source.

``mask_source`` returns a string of exactly the same length as its input in
which the contents of comments, string literals and char literals are
replaced with spaces (newlines are kept). Structural scanning and reference
rewriting then operate on the masked text with plain regexes without ever
matching inside a comment or a literal, while offsets and line numbers stay
valid for the original text.
"""

from __future__ import annotations

import re

_RAW_STRING_START = re.compile(r'b?r(#*)"')
_IDENT_CHAR = re.compile(r"[A-Za-z0-9_]")


def _blank(chars: list[str], start: int, end: int) -> None:
    for i in range(start, end):
        if chars[i] != "\n":
            chars[i] = " "


def mask_source(text: str) -> str:
    """Blank out comments, string literals and char literals.

    Quote characters of literals are kept so that ``"..."`` still reads as
    an expression to later scanners. Unterminated comments and strings run
    to the end of the input.
    """
    chars = list(text)
    n = len(text)
    i = 0
    while i < n:
        c = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if c == "/" and nxt == "/":
            end = text.find("\n", i)
            end = n if end == -1 else end
            _blank(chars, i, end)
            i = end
            continue

        if c == "/" and nxt == "*":
            depth = 1
            j = i + 2
            while j < n and depth:
                if text.startswith("/*", j):
                    depth += 1
                    j += 2
                elif text.startswith("*/", j):
                    depth -= 1
                    j += 2
                else:
                    j += 1
            _blank(chars, i, j)
            i = j
            continue

        if c in "rb" and (i == 0 or not _IDENT_CHAR.match(text[i - 1])):
            m = _RAW_STRING_START.match(text, i)
            if m:
                closing = '"' + m.group(1)
                body_start = m.end()
                end = text.find(closing, body_start)
                end = n if end == -1 else end
                _blank(chars, body_start, end)
                i = end + len(closing)
                continue
            if c == "b" and nxt in "\"'":
                i += 1
                continue

        if c == '"':
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == "\\" else 1
            _blank(chars, i + 1, min(j, n))
            i = j + 1
            continue

        if c == "'":
            end = _char_literal_end(text, i)
            if end is not None:
                _blank(chars, i + 1, end)
                i = end + 1
                continue

        i += 1
    return "".join(chars)


def _char_literal_end(text: str, i: int) -> int | None:
    """Index of the closing quote of a char literal at ``i``, or None for a lifetime."""
    n = len(text)
    if i + 1 >= n:
        return None
    if text[i + 1] == "\\":
        j = i + 3
        while j < n and text[j] != "'" and text[j] != "\n":
            j += 1
        return j if j < n and text[j] == "'" else None
    if i + 2 < n and text[i + 2] == "'" and text[i + 1] != "\n":
        return i + 2
    # multi-byte chars are single str characters, so 'é' is covered above
    return None


def line_offsets(text: str) -> list[int]:
    """Offsets of the first character of every line (1-based line = index + 1)."""
    offsets = [0]
    for m in re.finditer("\n", text):
        offsets.append(m.end())
    return offsets


def offset_to_line(offsets: list[int], offset: int) -> int:
    """1-based line number containing ``offset``."""
    lo, hi = 0, len(offsets) - 1
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if offsets[mid] <= offset:
            lo = mid
        else:
            hi = mid - 1
    return lo + 1
