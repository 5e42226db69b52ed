"""Top-level item extraction for Rust source files.

Works on the masked text from :mod:`modsplit.scanning.lexer`: a statement
starts at the first non-blank character at brace depth zero and ends at a
depth-zero ``;`` or, for block items (fn, struct, impl, mod { }, macro
invocations with braces...), at the ``}`` closing its body.
"""

from __future__ import annotations

import re
from dataclasses import replace
from pathlib import Path
from typing import Optional

from ..exceptions import ParsingError
from ..logging_config import get_logger
from .lexer import line_offsets, mask_source, offset_to_line
from .models import Declaration, DeclKind, ItemKind, ParsedFile, ParsedItem
from .use_tree import parse_use

logger = get_logger(__name__)

_PAIRS = {")": "(", "]": "[", "}": "{"}

_VIS = re.compile(r"^pub(?:\s*\((?P<scope>[^)]*)\))?\s*")
_HEADER = re.compile(
    r"""^(?P<quals>(?:(?:default|unsafe|async|const|auto|extern(?:\s*"[^"]*")?)\s+)*)
        (?P<kw>fn|struct|enum|union|trait|impl|mod|type|const|static|use
              |macro_rules\s*!|extern\s+crate|extern)(?![\w])""",
    re.VERBOSE,
)
_NAME = re.compile(r"\s*(?:r#)?(?P<name>[A-Za-z_]\w*)")
_MACRO_CALL = re.compile(r"^(?:::)?[A-Za-z_][\w:]*\s*!")
_IDENT = re.compile(r"\b[A-Za-z_]\w*\b")
_PATH = re.compile(r"\b(?:[A-Za-z_]\w*::)+[A-Za-z_]\w*")
_PATH_ATTR = re.compile(r'#\s*\[\s*path\s*=\s*"([^"]*)"\s*\]')

_BLOCK_KEYWORDS = {"fn", "struct", "enum", "union", "trait", "impl", "mod", "extern", "macro_rules"}

_ITEM_KINDS = {
    "fn": ItemKind.FUNCTION,
    "struct": ItemKind.STRUCT,
    "union": ItemKind.STRUCT,
    "enum": ItemKind.ENUM,
    "trait": ItemKind.TRAIT,
    "impl": ItemKind.IMPL_BLOCK,
    "const": ItemKind.CONST,
    "static": ItemKind.STATIC,
    "type": ItemKind.TYPE_ALIAS,
    "macro_rules": ItemKind.MACRO,
}

_KEYWORDS = frozenset(
    "as break const continue crate else enum extern false fn for if impl in let loop match mod "
    "move mut pub ref return self Self static struct super trait true type unsafe use where "
    "while async await dyn union macro_rules".split()
)


def parse_file(filepath: Path, rel_path: str) -> ParsedFile:
    """Read and parse one file.

    Raises:
        ParsingError: If braces do not balance
    """
    from ..file_ops import read_text

    return parse_source(read_text(filepath), rel_path)


def parse_source(text: str, rel_path: str = "<memory>") -> ParsedFile:
    """Parse Rust source text into items and declarations.

    Raises:
        ParsingError: If braces do not balance
    """
    masked = mask_source(text)
    offsets = line_offsets(text)
    original_lines = text.split("\n")

    items: list[ParsedItem] = []
    declarations: list[Declaration] = []
    prev_end_line = 0

    spans = _split_statements(masked, offsets, rel_path)
    for start, end in spans:
        first_line = offset_to_line(offsets, start)
        end_line = offset_to_line(offsets, end - 1)
        start_line = _extend_over_comments(original_lines, first_line, prev_end_line)
        shares = first_line <= prev_end_line
        stmt_masked = masked[start:end]
        stmt_text = text[start:end]
        keyword_offset = start + len(stmt_masked) - len(_strip_attributes(stmt_masked))
        header_line = offset_to_line(offsets, keyword_offset)
        header_column = keyword_offset - offsets[header_line - 1]
        region = _classify(stmt_masked, stmt_text, start_line, end_line, header_line, shares)
        region = replace(region, header_line=header_line, header_column=header_column)
        if isinstance(region, ParsedItem):
            items.append(region)
        else:
            declarations.append(region)
        prev_end_line = end_line

    items, declarations = _mark_line_sharing(items, declarations)

    imports: dict = {}
    for decl in declarations:
        if decl.use is None:
            continue
        for leaf in decl.use.leaves:
            if leaf.local_name:
                imports[leaf.local_name] = leaf.path

    return ParsedFile(
        path=rel_path,
        line_count=count_lines(text),
        items=tuple(items),
        declarations=tuple(declarations),
        complexity=estimate_complexity(masked),
        imports=imports,
    )


def count_lines(text: str) -> int:
    """Physical line count; a trailing newline does not open a new line."""
    if not text:
        return 0
    return text.count("\n") + (0 if text.endswith("\n") else 1)


def estimate_complexity(masked: str) -> float:
    complexity = 1
    complexity += len(re.findall(r"\bif\s+", masked))
    complexity += len(re.findall(r"\belse\b", masked))
    complexity += len(re.findall(r"\bmatch\s+", masked))
    complexity += len(re.findall(r"\bfor\s+", masked))
    complexity += len(re.findall(r"\bwhile\s+", masked))
    complexity += len(re.findall(r"\bloop\s*\{", masked))
    complexity += len(re.findall(r"&&", masked))
    complexity += len(re.findall(r"\|\|", masked))
    complexity += len(re.findall(r"\?", masked))  # ? error propagation
    return float(complexity)


def _split_statements(masked: str, offsets: list[int], rel_path: str) -> list[tuple[int, int]]:
    spans: list[tuple[int, int]] = []
    stack: list[tuple[str, int]] = []
    start: Optional[int] = None

    for i, ch in enumerate(masked):
        if start is None:
            if ch.isspace() or ch == ";":
                continue
            start = i
        if ch in "([{":
            stack.append((ch, i))
        elif ch in ")]}":
            if not stack or stack[-1][0] != _PAIRS[ch]:
                raise ParsingError(
                    Path(rel_path), f"unbalanced '{ch}'", line=offset_to_line(offsets, i)
                )
            stack.pop()
            if not stack:
                stmt = masked[start : i + 1]
                if ch == "}" and _is_block_terminated(stmt):
                    spans.append((start, i + 1))
                    start = None
                elif ch == "]" and stmt.lstrip().startswith("#!"):
                    spans.append((start, i + 1))
                    start = None
        elif ch == ";" and not stack:
            spans.append((start, i + 1))
            start = None

    if stack:
        opener, pos = stack[-1]
        raise ParsingError(Path(rel_path), f"unclosed '{opener}'", line=offset_to_line(offsets, pos))
    if start is not None and masked[start:].strip():
        raise ParsingError(
            Path(rel_path), "unterminated top-level statement", line=offset_to_line(offsets, start)
        )
    return spans


def _strip_attributes(stmt: str) -> str:
    """Drop leading outer attributes ``#[...]`` from masked statement text."""
    text = stmt.lstrip()
    while text.startswith("#[") or re.match(r"#\s+\[", text):
        depth = 0
        for j, ch in enumerate(text):
            if ch == "[":
                depth += 1
            elif ch == "]":
                depth -= 1
                if depth == 0:
                    text = text[j + 1 :].lstrip()
                    break
        else:
            return text
    return text


def _split_visibility(text: str) -> tuple[str, str]:
    m = _VIS.match(text)
    if not m:
        return "", text
    scope = m.group("scope")
    vis = "pub" if scope is None else f"pub({' '.join(scope.split())})"
    return vis, text[m.end() :]


def _keyword(header: str) -> tuple[Optional[str], Optional[re.Match]]:
    m = _HEADER.match(header)
    if not m:
        return None, None
    kw = re.sub(r"\s+", " ", m.group("kw"))
    if kw.startswith("macro_rules"):
        kw = "macro_rules"
    return kw, m


def _is_block_terminated(stmt: str) -> bool:
    header = _strip_attributes(stmt)
    if header.startswith("#!"):
        return False
    _, rest = _split_visibility(header)
    kw, _ = _keyword(rest)
    if kw is None:
        return bool(_MACRO_CALL.match(rest))
    return kw in _BLOCK_KEYWORDS


def _extend_over_comments(lines: list[str], header_line: int, floor: int) -> int:
    """Walk upwards over attribute/doc/comment lines glued to an item."""
    start = header_line
    while start - 1 > floor:
        above = lines[start - 2].strip()
        if not above:
            break
        if above.startswith("//!") or above.startswith("/*!"):
            break
        if above.startswith(("//", "/*", "*")):
            start -= 1
            continue
        break
    return start


def _classify(
    masked: str,
    text: str,
    start_line: int,
    end_line: int,
    header_line: int,
    shares: bool,
):
    stripped = masked.lstrip()
    if stripped.startswith("#!"):
        return Declaration(DeclKind.INNER_ATTR, start_line, end_line, shares_line=shares)

    header = _strip_attributes(masked)
    visibility, rest = _split_visibility(header)
    kw, m = _keyword(rest)

    if kw is None:
        if _MACRO_CALL.match(rest):
            name = rest.split("!", 1)[0].strip()
            return Declaration(DeclKind.MACRO_CALL, start_line, end_line, name=name, shares_line=shares)
        return Declaration(DeclKind.OTHER, start_line, end_line, shares_line=shares)

    after = rest[m.end() :]

    if kw == "use":
        return Declaration(
            DeclKind.USE,
            start_line,
            end_line,
            visibility=visibility,
            use=parse_use(_strip_attributes(text)),
            shares_line=shares,
        )
    if kw == "extern crate":
        nm = _NAME.match(after)
        return Declaration(
            DeclKind.EXTERN_CRATE,
            start_line,
            end_line,
            name=nm.group("name") if nm else None,
            visibility=visibility,
            shares_line=shares,
        )
    if kw == "extern":
        return Declaration(DeclKind.FOREIGN_BLOCK, start_line, end_line, shares_line=shares)
    if kw == "mod":
        nm = _NAME.match(after)
        name = nm.group("name") if nm else None
        is_block = masked.rstrip().endswith("}")
        path_attr = _PATH_ATTR.search(text)
        return Declaration(
            DeclKind.INLINE_MOD if is_block else DeclKind.MOD,
            start_line,
            end_line,
            name=name,
            visibility=visibility,
            path_attr=path_attr.group(1) if path_attr else None,
            shares_line=shares,
        )

    kind = _ITEM_KINDS[kw]
    self_type = trait_name = None
    if kind is ItemKind.MACRO:
        nm = _NAME.match(after)
        name = nm.group("name") if nm else "macro"
    elif kind is ItemKind.IMPL_BLOCK:
        trait_name, self_type = _parse_impl_header(after)
        name = f"impl {trait_name} for {self_type}" if trait_name else f"impl {self_type}"
    else:
        nm = _NAME.match(after)
        name = nm.group("name") if nm else "_"

    body = masked
    identifiers = frozenset(w for w in _IDENT.findall(body) if w not in _KEYWORDS and w != name)
    paths = tuple(dict.fromkeys(_PATH.findall(body)))
    return ParsedItem(
        kind=kind,
        name=name,
        visibility=visibility,
        start_line=start_line,
        end_line=end_line,
        header_line=header_line,
        identifiers=identifiers,
        paths=paths,
        self_type=self_type,
        trait_name=trait_name,
        shares_line=shares,
    )


def _parse_impl_header(after: str) -> tuple[Optional[str], str]:
    """Return (trait path or None, self type base name) from text after ``impl``."""
    text = after.lstrip()
    if text.startswith("<"):
        depth = 0
        for j, ch in enumerate(text):
            if ch == "<":
                depth += 1
            elif ch == ">":
                depth -= 1
                if depth == 0:
                    text = text[j + 1 :]
                    break
    head = re.split(r"\{|\bwhere\b", text, maxsplit=1)[0]

    trait_part = None
    depth = 0
    for m in re.finditer(r"[<>]|\bfor\b", head):
        tok = m.group(0)
        if tok == "<":
            depth += 1
        elif tok == ">":
            depth -= 1
        elif depth == 0:
            trait_part = head[: m.start()]
            head = head[m.end() :]
            break

    trait_name = None
    if trait_part is not None:
        trait_name = re.sub(r"\s+", "", trait_part).lstrip("!")
    return trait_name, _base_type_name(head)


def _base_type_name(type_text: str) -> str:
    text = type_text.strip().lstrip("&").strip()
    text = re.sub(r"^(?:mut\s+|dyn\s+|'\w+\s+)+", "", text)
    text = text.split("<", 1)[0].strip()
    segment = text.split("::")[-1].strip()
    m = re.match(r"[A-Za-z_]\w*", segment)
    return m.group(0) if m else (segment or "_")


def _mark_line_sharing(items, declarations):
    """Flag regions whose first or last line is also used by another region."""
    regions = sorted(
        [("i", idx, r) for idx, r in enumerate(items)] + [("d", idx, r) for idx, r in enumerate(declarations)],
        key=lambda t: (t[2].start_line, t[2].end_line),
    )
    shared: set[tuple[str, int]] = set()
    for (ka, ia, a), (kb, ib, b) in zip(regions, regions[1:]):
        if b.start_line <= a.end_line:
            shared.add((ka, ia))
            shared.add((kb, ib))

    items = [replace(r, shares_line=True) if ("i", i) in shared else r for i, r in enumerate(items)]
    declarations = [
        replace(r, shares_line=True) if ("d", i) in shared else r for i, r in enumerate(declarations)
    ]
    return items, declarations
