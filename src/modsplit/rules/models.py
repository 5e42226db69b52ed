"""Violation data types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Severity(Enum):
    ERROR = 3
    WARNING = 2
    INFO = 1


class RuleKind(Enum):
    TOO_MANY_CRATES = "TooManyCrates"
    TOO_MANY_MODULES = "TooManyModules"
    TOO_MANY_FUNCTIONS = "TooManyFunctions"
    TOO_MANY_LOC = "TooManyLoc"
    ITEM_IN_ENTRY_FILE = "ItemInEntryFile"
    EXTERNAL_TOOL = "ExternalToolViolation"


@dataclass(frozen=True)
class Location:
    file: str
    line_start: int = 1
    line_end: int = 1
    crate: Optional[str] = None
    module: Optional[str] = None  # module path, e.g. "engine::net"
    item: Optional[str] = None  # item ID


@dataclass(frozen=True)
class Violation:
    kind: RuleKind
    location: Location
    severity: Severity
    message: str
    suggestion: Optional[str] = None
    count: Optional[int] = None
    maximum: Optional[int] = None
    component: Optional[str] = None
    item_kind: Optional[str] = None  # ItemInEntryFile: "function", "struct", ...
    code: Optional[str] = None  # ExternalToolViolation

    @property
    def key(self) -> str:
        """Stable identity of the defect, independent of its message."""
        subject = (
            self.location.item
            or self.code
            or self.location.module
            or self.component
            or self.location.crate
            or ""
        )
        return f"{self.kind.value}:{self.location.file}:{self.location.line_start}:{subject}"

    def sort_key(self):
        return (
            -self.severity.value,
            self.location.file,
            self.location.line_start,
            self.kind.value,
            self.message,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "severity": self.severity.name,
            "message": self.message,
            "file": self.location.file,
            "line_start": self.location.line_start,
            "line_end": self.location.line_end,
        }
        for name in ("crate", "module", "item"):
            value = getattr(self.location, name)
            if value is not None:
                data[name] = value
        for name in ("suggestion", "count", "maximum", "component", "item_kind", "code"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data
