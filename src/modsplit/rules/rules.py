"""Structural rules.

Each rule is a small class with a ``name`` and a ``check`` method that
inspects one crate (or, for component rules, the whole project) and
returns violations. Rules never mutate anything.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..config import ModularityConfig
from ..model import Crate, Item, Module, Project
from ..scanning.models import ItemKind
from .models import Location, RuleKind, Severity, Violation


@dataclass(frozen=True)
class Component:
    """A group of crates counted together by TooManyCrates."""

    name: str
    directory: str
    crates: Tuple[Crate, ...]


def components(project: Project, config: ModularityConfig) -> List[Component]:
    """Configured components first, then crates grouped by parent directory."""
    by_name = {c.name: c for c in project.crates}
    claimed = set()
    result: List[Component] = []
    for name in sorted(config.components):
        members = tuple(by_name[n] for n in config.components[name] if n in by_name)
        claimed.update(c.name for c in members)
        if members:
            result.append(Component(name, _common_dir([c.root for c in members]), members))

    grouped: Dict[str, List[Crate]] = {}
    for crate in project.crates:
        if crate.name in claimed:
            continue
        grouped.setdefault(posixpath.dirname(crate.root), []).append(crate)
    for directory in sorted(grouped):
        result.append(Component(directory or ".", directory, tuple(grouped[directory])))
    return result


def _common_dir(roots: List[str]) -> str:
    parents = [posixpath.dirname(r) for r in roots]
    if not parents:
        return ""
    common = posixpath.commonpath(parents) if all(parents) else ""
    return common


class TooManyCratesRule:
    name = "too_many_crates"

    def check(self, project: Project, config: ModularityConfig) -> List[Violation]:
        maximum = config.thresholds.max_crates_per_component
        violations = []
        for component in components(project, config):
            count = len(component.crates)
            if count <= maximum:
                continue
            violations.append(
                Violation(
                    kind=RuleKind.TOO_MANY_CRATES,
                    location=Location(file=project.root_manifest or "Cargo.toml"),
                    severity=Severity.ERROR,
                    message=f"Component '{component.name}' has {count} crates (max {maximum})",
                    suggestion="Group related crates under sub-directories",
                    count=count,
                    maximum=maximum,
                    component=component.name,
                )
            )
        return violations


class TooManyModulesRule:
    name = "too_many_modules"

    def check(self, crate: Crate, config: ModularityConfig) -> List[Violation]:
        maximum = config.thresholds.max_modules_per_crate
        count = crate.metrics.module_count
        if count <= maximum:
            return []
        return [
            Violation(
                kind=RuleKind.TOO_MANY_MODULES,
                location=Location(file=crate.manifest, crate=crate.name),
                severity=Severity.ERROR,
                message=f"Crate '{crate.name}' has {count} modules (max {maximum})",
                suggestion="Split the crate into smaller crates",
                count=count,
                maximum=maximum,
            )
        ]


class TooManyFunctionsRule:
    name = "too_many_functions"

    def check(self, crate: Crate, config: ModularityConfig) -> List[Violation]:
        maximum = config.thresholds.max_functions_per_module
        violations = []
        for module in crate.modules:
            count = module.metrics.function_count
            if count <= maximum:
                continue
            violations.append(
                Violation(
                    kind=RuleKind.TOO_MANY_FUNCTIONS,
                    location=Location(
                        file=module.file,
                        line_end=max(1, module.metrics.line_count),
                        crate=crate.name,
                        module=module.path,
                    ),
                    severity=Severity.WARNING,
                    message=f"Module '{module.path}' has {count} functions (max {maximum})",
                    suggestion="Split the module into submodules",
                    count=count,
                    maximum=maximum,
                )
            )
        return violations


class TooManyLocRule:
    name = "too_many_loc"

    def check(self, crate: Crate, config: ModularityConfig) -> List[Violation]:
        maximum = config.thresholds.max_loc_per_file
        violations = []
        for module in crate.modules:
            count = module.metrics.line_count
            if count <= maximum:
                continue
            violations.append(
                Violation(
                    kind=RuleKind.TOO_MANY_LOC,
                    location=Location(
                        file=module.file,
                        line_end=count,
                        crate=crate.name,
                        module=module.path,
                    ),
                    severity=Severity.WARNING,
                    message=f"File '{module.file}' has {count} lines (max {maximum})",
                    suggestion="Move items into sibling files",
                    count=count,
                    maximum=maximum,
                )
            )
        return violations


ENTRY_OFFENDER_KINDS = (ItemKind.FUNCTION, ItemKind.STRUCT, ItemKind.ENUM, ItemKind.TRAIT)


def entry_file_offenders(module: Module, config: ModularityConfig) -> List[Item]:
    """Items of an entry-file module that its toggles forbid, in source order."""
    rules = config.rules
    if module.file_name == "lib.rs":
        check_functions = rules.no_functions_in_lib_rs
        check_structs = rules.no_structs_in_lib_rs
    elif module.file_name == "mod.rs":
        check_functions = rules.no_functions_in_mod_rs
        check_structs = rules.no_structs_in_mod_rs
    else:
        return []
    offenders = []
    for item in module.items:
        if item.kind is ItemKind.FUNCTION and check_functions:
            offenders.append(item)
        elif item.kind in ENTRY_OFFENDER_KINDS[1:] and check_structs:
            offenders.append(item)
    return offenders


class ItemInEntryFileRule:
    """Code declared directly in ``lib.rs`` or ``mod.rs``. ``main.rs`` is exempt."""

    name = "item_in_entry_file"

    def check(self, crate: Crate, config: ModularityConfig) -> List[Violation]:
        violations = []
        for module in crate.modules:
            for item in entry_file_offenders(module, config):
                violations.append(
                    Violation(
                        kind=RuleKind.ITEM_IN_ENTRY_FILE,
                        location=Location(
                            file=module.file,
                            line_start=item.span.start_line,
                            line_end=item.span.end_line,
                            crate=crate.name,
                            module=module.path,
                            item=item.id,
                        ),
                        severity=Severity.WARNING,
                        message=f"{item.kind.value} '{item.name}' declared in entry file {module.file}",
                        suggestion=f"Move '{item.name}' into its own module and re-export it",
                        item_kind=item.kind.value,
                    )
                )
        return violations


CRATE_RULES = (TooManyModulesRule(), TooManyFunctionsRule(), TooManyLocRule(), ItemInEntryFileRule())
PROJECT_RULES = (TooManyCratesRule(),)
