"""External static-analysis tool (``cargo clippy``) as a violation source."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path, PurePosixPath
from typing import List, Optional

from ..config import ModularityConfig
from ..exceptions import ExternalToolError
from ..logging_config import get_logger
from ..security import PathValidator, relative_posix
from .models import Location, RuleKind, Severity, Violation

logger = get_logger(__name__)

_LEVELS = {"error": Severity.ERROR, "warning": Severity.WARNING}


def run_external_tool(project_root: Path, config: ModularityConfig) -> List[Violation]:
    """Run the configured tool and map its diagnostics to violations.

    In ``optional`` mode an unavailable tool is logged and yields nothing.

    Raises:
        ExternalToolError: If the tool is unavailable in ``required`` mode
    """
    settings = config.external_tool
    if settings.mode == "off":
        return []

    command = list(settings.command)
    try:
        result = subprocess.run(
            command,
            cwd=str(project_root),
            capture_output=True,
            text=True,
            timeout=settings.timeout_seconds,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
        return _unavailable(settings.mode, command[0], str(e))

    violations = parse_diagnostics(result.stdout, Path(project_root))
    if result.returncode != 0 and not result.stdout.strip():
        stderr = result.stderr.strip().splitlines()
        return _unavailable(
            settings.mode, command[0], stderr[-1] if stderr else f"exit status {result.returncode}"
        )
    logger.debug(f"{command[0]} reported {len(violations)} diagnostics")
    return violations


def _unavailable(mode: str, tool: str, reason: str) -> List[Violation]:
    if mode == "required":
        raise ExternalToolError(tool, reason)
    logger.warning(f"External tool '{tool}' unavailable, continuing without it: {reason}")
    return []


def parse_diagnostics(output: str, project_root: Path) -> List[Violation]:
    """Map ``--message-format=json`` lines to ExternalToolViolation entries.

    Lines that are not compiler messages, or carry no primary span, are
    ignored, as are diagnostics located outside the project (registry
    crates, sysroot). Diagnostics repeated for several targets are reported
    once.
    """
    violations: List[Violation] = []
    seen = set()
    validator = PathValidator(project_root)
    for line in output.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            continue
        if record.get("reason") != "compiler-message":
            continue
        message = record.get("message") or {}
        span = _primary_span(message)
        if span is None:
            continue

        code = (message.get("code") or {}).get("code") or message.get("level", "diagnostic")
        file = _project_file(span.get("file_name", ""), validator)
        if file is None:
            logger.debug(f"Skipping diagnostic outside the project: {span.get('file_name')}")
            continue
        line_start = int(span.get("line_start", 1))
        text = message.get("message", "")
        identity = (code, file, line_start, text)
        if identity in seen:
            continue
        seen.add(identity)

        violations.append(
            Violation(
                kind=RuleKind.EXTERNAL_TOOL,
                location=Location(
                    file=file,
                    line_start=line_start,
                    line_end=int(span.get("line_end", line_start)),
                    crate=(record.get("target") or {}).get("name"),
                ),
                severity=_LEVELS.get(message.get("level", ""), Severity.INFO),
                message=text,
                code=code,
            )
        )
    return violations


def _primary_span(message: dict) -> Optional[dict]:
    spans = message.get("spans") or []
    for span in spans:
        if span.get("is_primary"):
            return span
    return spans[0] if spans else None


def _project_file(file_name: str, validator: PathValidator) -> Optional[str]:
    """Root-relative POSIX path of a diagnostic's file, or None if it is not ours."""
    path = PurePosixPath(file_name.replace("\\", "/"))
    if path.is_absolute():
        try:
            rel_path = relative_posix(Path(path), validator.root_dir)
        except ValueError:
            return None
    else:
        rel_path = path.as_posix()
    return rel_path if validator.is_safe_path(rel_path) else None
