"""Derive the project model from disk.

The tree is rebuilt from scratch on every call; it is never patched.
Crates are scanned on a thread pool, then item references are resolved
against a project-wide symbol table and the tree is frozen.
"""

from __future__ import annotations

import posixpath
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

from ..config import DEFAULT_CONFIG, ModularityConfig
from ..exceptions import FileAccessError, ParsingError, ProjectNotFoundError
from ..logging_config import get_logger
from ..scanning.models import DeclKind, ItemKind, ParsedFile, ParsedItem
from ..scanning.rust_parser import parse_file
from .entities import (
    ENTRY_FILE_NAMES,
    Crate,
    CrateKind,
    CrateMetrics,
    Item,
    Module,
    ModuleKind,
    ModuleMetrics,
    Project,
    Span,
)
from .manifest import Manifest, expand_members, read_manifest
from .paths import Segments, absolutize, split_path

logger = get_logger(__name__)


@dataclass
class _ModuleDraft:
    name: str
    segments: Segments
    file: str
    kind: ModuleKind
    parsed: ParsedFile
    children: List["_ModuleDraft"] = field(default_factory=list)

    def walk(self):
        yield self
        for c in self.children:
            yield from c.walk()


@dataclass
class _CrateDraft:
    manifest: Manifest
    root: str
    kind: CrateKind
    module: _ModuleDraft
    issues: List[str] = field(default_factory=list)


def build_project(root: Path, config: Optional[ModularityConfig] = None) -> Project:
    """Scan the Cargo project at ``root``.

    Per-file problems are recorded in ``Project.issues``; the offending file
    is left out of the model.

    Raises:
        ProjectNotFoundError: If ``root`` is not a directory with a Cargo.toml
    """
    config = config or DEFAULT_CONFIG
    root = Path(root).resolve()
    if not root.is_dir():
        raise ProjectNotFoundError(root, "not a directory")
    if not (root / "Cargo.toml").is_file():
        raise ProjectNotFoundError(root, "no Cargo.toml at the project root")

    try:
        root_manifest = read_manifest(root, "Cargo.toml")
    except ParsingError as e:
        raise ProjectNotFoundError(root, e.reason)

    crate_dirs: List[str] = []
    if root_manifest.package_name:
        crate_dirs.append("")
    crate_dirs.extend(d for d in expand_members(root, root_manifest) if d not in crate_dirs)

    issues: List[str] = []
    drafts: Dict[str, _CrateDraft] = {}
    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        futures = {executor.submit(_scan_crate, root, d, root_manifest): d for d in crate_dirs}
        for future in as_completed(futures):
            crate_dir = futures[future]
            try:
                draft = future.result()
            except (ParsingError, FileAccessError) as e:
                logger.warning(f"Skipping crate at '{crate_dir or '.'}': {e}")
                issues.append(f"{crate_dir or '.'}: {e}")
                continue
            if draft is not None:
                drafts[crate_dir] = draft

    ordered: List[_CrateDraft] = []
    names: Set[str] = set()
    for crate_dir in crate_dirs:
        draft = drafts.get(crate_dir)
        if draft is None:
            continue
        issues.extend(draft.issues)
        name = draft.manifest.package_name
        if name in names:
            issues.append(f"{draft.manifest.path}: duplicate crate name '{name}' skipped")
            continue
        names.add(name)
        ordered.append(draft)

    symbols = _symbol_table(ordered)
    crate_names = {d.module.segments[0] for d in ordered}
    crates = tuple(_freeze_crate(d, symbols, crate_names) for d in ordered)

    return Project(
        root=root,
        crates=crates,
        members=tuple(expand_members(root, root_manifest)),
        root_manifest="Cargo.toml",
        has_workspace=root_manifest.has_workspace,
        issues=tuple(issues),
    )


def _scan_crate(root: Path, crate_dir: str, root_manifest: Manifest) -> Optional[_CrateDraft]:
    manifest_path = posixpath.join(crate_dir, "Cargo.toml")
    if not (root / manifest_path).is_file():
        raise FileAccessError(root / manifest_path, "workspace member has no Cargo.toml")
    manifest = root_manifest if crate_dir == "" else read_manifest(root, manifest_path)
    if not manifest.package_name:
        raise ParsingError(root / manifest_path, "manifest has no [package] name")

    candidates = []
    if manifest.lib_path:
        candidates.append((posixpath.normpath(posixpath.join(crate_dir, manifest.lib_path)), CrateKind.LIBRARY))
    candidates.append((posixpath.join(crate_dir, "src", "lib.rs"), CrateKind.LIBRARY))
    candidates.append((posixpath.join(crate_dir, "src", "main.rs"), CrateKind.BINARY))
    entry = next(((p, k) for p, k in candidates if (root / p).is_file()), None)
    if entry is None:
        raise FileAccessError(root / crate_dir, "crate has neither src/lib.rs nor src/main.rs")

    issues: List[str] = []
    lib_name = manifest.lib_name or manifest.package_name.replace("-", "_")
    module = _scan_module(root, lib_name, (lib_name,), entry[0], issues)
    if module is None:
        raise ParsingError(root / entry[0], "crate root could not be parsed")
    logger.debug(f"Scanned crate {manifest.package_name}: {sum(1 for _ in module.walk())} modules")
    return _CrateDraft(manifest=manifest, root=crate_dir, kind=entry[1], module=module, issues=issues)


def _scan_module(
    root: Path, name: str, segments: Segments, rel_file: str, issues: List[str]
) -> Optional[_ModuleDraft]:
    try:
        parsed = parse_file(root / rel_file, rel_file)
    except (ParsingError, FileAccessError) as e:
        logger.warning(f"Skipping {rel_file}: {e}")
        issues.append(f"{rel_file}: {getattr(e, 'reason', e)}")
        return None

    file_name = posixpath.basename(rel_file)
    kind = ModuleKind.ENTRY if file_name in ENTRY_FILE_NAMES else ModuleKind.FILE
    draft = _ModuleDraft(name=name, segments=segments, file=rel_file, kind=kind, parsed=parsed)

    parent_dir = posixpath.dirname(rel_file)
    child_dir = parent_dir if kind is ModuleKind.ENTRY else posixpath.join(parent_dir, posixpath.splitext(file_name)[0])

    seen: Set[str] = set()
    for decl in parsed.declarations:
        if decl.kind not in (DeclKind.MOD, DeclKind.INLINE_MOD) or not decl.name:
            continue
        if decl.name in seen:
            issues.append(f"{rel_file}: duplicate module '{decl.name}'")
            continue
        seen.add(decl.name)
        if decl.kind is DeclKind.INLINE_MOD:
            continue

        child_file = _locate_child(root, parent_dir, child_dir, decl.name, decl.path_attr)
        if child_file is None:
            issues.append(f"{rel_file}: file not found for module '{decl.name}'")
            continue
        child = _scan_module(root, decl.name, segments + (decl.name,), child_file, issues)
        if child is not None:
            draft.children.append(child)
    return draft


def _locate_child(
    root: Path, parent_dir: str, child_dir: str, name: str, path_attr: Optional[str]
) -> Optional[str]:
    if path_attr:
        candidate = posixpath.normpath(posixpath.join(parent_dir, path_attr))
        return candidate if (root / candidate).is_file() else None
    flat = posixpath.join(child_dir, f"{name}.rs")
    nested = posixpath.join(child_dir, name, "mod.rs")
    if (root / flat).is_file():
        return flat
    if (root / nested).is_file():
        return nested
    return None


# ---------------------------------------------------------------------------
# Reference resolution
# ---------------------------------------------------------------------------


def _item_id(segments: Segments, item: ParsedItem) -> str:
    prefix = "::".join(segments)
    if item.kind is ItemKind.IMPL_BLOCK:
        return f"{prefix}::impl@{item.start_line}"
    return f"{prefix}::{item.name}"


def _symbol_table(crates: List[_CrateDraft]) -> Dict[Segments, Set[str]]:
    """Module segments -> names of the items and child modules it declares."""
    table: Dict[Segments, Set[str]] = {}
    for crate in crates:
        for m in crate.module.walk():
            names = {i.name for i in m.parsed.items if i.kind is not ItemKind.IMPL_BLOCK}
            names.update(c.name for c in m.children)
            table[m.segments] = names
    return table


def _module_scope(m: _ModuleDraft, symbols: Dict[Segments, Set[str]], crate_names: Set[str]):
    """Resolve a module's imports: (name -> absolute path, glob prefixes)."""
    local = symbols.get(m.segments, set())
    imports: Dict[str, Segments] = {}
    globs: List[Segments] = []
    for decl in m.parsed.declarations:
        if decl.use is None:
            continue
        for leaf in decl.use.leaves:
            absolute = absolutize(leaf.path, m.segments, crate_names, local)
            if absolute is None:
                continue
            if leaf.glob:
                globs.append(absolute)
            elif leaf.local_name:
                imports[leaf.local_name] = absolute
    return local, imports, globs


def _resolve_references(
    m: _ModuleDraft,
    item: ParsedItem,
    own_id: str,
    symbols: Dict[Segments, Set[str]],
    crate_names: Set[str],
    scope,
) -> frozenset:
    local, imports, globs = scope
    refs: Set[str] = set()

    def add(absolute: Optional[Segments]) -> None:
        # longest prefix that names an item in a known module
        while absolute and len(absolute) >= 2:
            parent, name = absolute[:-1], absolute[-1]
            if name in symbols.get(parent, ()) and parent + (name,) not in symbols:
                refs.add("::".join(absolute))
                return
            absolute = absolute[:-1]

    for ident in item.identifiers:
        if ident in local:
            add(m.segments + (ident,))
        elif ident in imports:
            add(imports[ident])
        else:
            for prefix in globs:
                if ident in symbols.get(prefix, ()):
                    add(prefix + (ident,))
                    break
    for text in item.paths:
        add(absolutize(split_path(text), m.segments, crate_names, local, imports))

    refs.discard(own_id)
    return frozenset(refs)


def _freeze_module(m: _ModuleDraft, symbols, crate_names) -> Module:
    scope = _module_scope(m, symbols, crate_names)
    items = []
    for parsed in m.parsed.items:
        item_id = _item_id(m.segments, parsed)
        items.append(
            Item(
                id=item_id,
                kind=parsed.kind,
                name=parsed.name,
                visibility=parsed.visibility,
                span=Span(m.file, parsed.start_line, parsed.end_line),
                header_line=parsed.header_line,
                header_column=parsed.header_column,
                references=_resolve_references(m, parsed, item_id, symbols, crate_names, scope),
                self_type=parsed.self_type,
                trait_name=parsed.trait_name,
                shares_line=parsed.shares_line,
            )
        )
    metrics = ModuleMetrics(
        function_count=sum(1 for i in items if i.kind is ItemKind.FUNCTION),
        struct_count=sum(1 for i in items if i.kind in (ItemKind.STRUCT, ItemKind.ENUM)),
        line_count=m.parsed.line_count,
        complexity=m.parsed.complexity,
    )
    return Module(
        name=m.name,
        path="::".join(m.segments),
        file=m.file,
        kind=m.kind,
        items=tuple(items),
        children=tuple(_freeze_module(c, symbols, crate_names) for c in m.children),
        declarations=m.parsed.declarations,
        metrics=metrics,
    )


def _freeze_crate(draft: _CrateDraft, symbols, crate_names) -> Crate:
    root_module = _freeze_module(draft.module, symbols, crate_names)
    modules = list(root_module.walk())
    metrics = CrateMetrics(
        module_count=len(modules) - 1,
        file_count=len(modules),
        line_count=sum(m.metrics.line_count for m in modules),
        function_count=sum(m.metrics.function_count for m in modules),
    )
    return Crate(
        name=draft.manifest.package_name,
        lib_name=draft.module.segments[0],
        root=draft.root,
        manifest=draft.manifest.path,
        kind=draft.kind,
        root_module=root_module,
        metrics=metrics,
        edition=draft.manifest.edition,
        path_dependencies=draft.manifest.path_dependencies,
    )
