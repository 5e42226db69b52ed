"""Configuration loading and management for modsplit.

Configuration sources are merged in priority order:
    1. Defaults (defined in ModularityConfig)
    2. Global config (~/.modsplit.toml)
    3. Project config (<project>/modsplit.toml)
    4. Explicit config file
    5. Environment variables (MODSPLIT_* prefix)
    6. Keyword overrides (CLI flags, tests)

Example:
    >>> config = load_config(max_loc_per_file=300)
    >>> config.thresholds.max_loc_per_file
    300
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]
ToolMode = Literal["off", "optional", "required"]

DEFAULT_PATTERN_ORDER: Tuple[str, ...] = (
    "split_crate",
    "split_module",
    "clean_entry_files",
    "distribute_loc",
)


@dataclass(frozen=True)
class ThresholdConfig:
    """Structural thresholds. A metric strictly above its maximum is a violation."""

    max_crates_per_component: int = 8
    max_modules_per_crate: int = 10
    max_functions_per_module: int = 20
    max_loc_per_file: int = 500

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise InvalidConfigError(f.name, value, "must be a positive integer")


@dataclass(frozen=True)
class RuleToggles:
    """Entry-file rules. Enums and traits follow the struct toggles."""

    no_functions_in_mod_rs: bool = True
    no_functions_in_lib_rs: bool = True
    no_structs_in_mod_rs: bool = True
    no_structs_in_lib_rs: bool = True


@dataclass(frozen=True)
class OracleConfig:
    """Advisory grouping service. Disabled while ``url`` is None."""

    url: Optional[str] = None
    api_key: Optional[str] = None
    timeout_seconds: float = 10.0
    retries: int = 3
    backoff_seconds: float = 0.5
    min_interval_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise InvalidConfigError("oracle.timeout_seconds", self.timeout_seconds, "must be positive")
        if self.retries < 0:
            raise InvalidConfigError("oracle.retries", self.retries, "must be non-negative")
        if self.backoff_seconds < 0 or self.min_interval_seconds < 0:
            raise InvalidConfigError("oracle", self.backoff_seconds, "delays must be non-negative")

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass(frozen=True)
class ExternalToolConfig:
    """External static-analysis tool run as a subprocess."""

    mode: ToolMode = "off"
    command: Tuple[str, ...] = ("cargo", "clippy", "--message-format=json", "--quiet")
    timeout_seconds: int = 300

    def __post_init__(self) -> None:
        if self.mode not in ("off", "optional", "required"):
            raise InvalidConfigError("external_tool.mode", self.mode, "expected off/optional/required")
        if not self.command:
            raise InvalidConfigError("external_tool.command", self.command, "must not be empty")
        if self.timeout_seconds < 1:
            raise InvalidConfigError("external_tool.timeout_seconds", self.timeout_seconds, "must be at least 1")


@dataclass(frozen=True)
class ModularityConfig:
    """Configuration for analysis and refactoring.

    Attributes:
        thresholds: Numeric limits checked by the rule engine
        rules: Entry-file rule toggles
        components: Component name -> crate names. Crates not listed are
            grouped by their parent directory.
        oracle: Advisory grouping oracle settings
        external_tool: External analysis tool settings
        workers: Thread pool size (None = auto-detect)
        pattern_order: Registration order of refactor patterns; the first
            pattern whose predicate matches a violation plans it
        verbosity: Logging verbosity level
    """

    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    rules: RuleToggles = field(default_factory=RuleToggles)
    components: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    external_tool: ExternalToolConfig = field(default_factory=ExternalToolConfig)
    workers: Optional[int] = None
    pattern_order: Tuple[str, ...] = DEFAULT_PATTERN_ORDER
    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        if self.workers is not None and self.workers < 1:
            raise InvalidConfigError("workers", self.workers, "must be at least 1")
        if len(set(self.pattern_order)) != len(self.pattern_order):
            raise InvalidConfigError("pattern_order", self.pattern_order, "duplicate pattern names")
        seen: Dict[str, str] = {}
        for component, crates in self.components.items():
            for crate in crates:
                if crate in seen:
                    raise InvalidConfigError(
                        "components", crate, f"listed in both {seen[crate]} and {component}"
                    )
                seen[crate] = component

    @property
    def max_workers(self) -> int:
        return self.workers or min(32, (os.cpu_count() or 1) + 4)


DEFAULT_CONFIG = ModularityConfig()

_SECTIONS = {
    "thresholds": ThresholdConfig,
    "rules": RuleToggles,
    "oracle": OracleConfig,
    "external_tool": ExternalToolConfig,
}


def load_config(
    project_root: Optional[Path] = None,
    config_file: Optional[Path] = None,
    **overrides: Any,
) -> ModularityConfig:
    """Load configuration with auto-discovery and merging.

    Flat threshold and rule keys (``max_loc_per_file=300``) are accepted in
    overrides and environment variables and routed to their section.

    Raises:
        ConfigurationError: If a config file is missing or invalid
    """
    merged: Dict[str, Any] = {}

    global_config = Path.home() / ".modsplit.toml"
    if global_config.exists():
        _merge(merged, _read_config_file(global_config, "global"))

    if project_root is not None:
        project_config = Path(project_root) / "modsplit.toml"
        if project_config.exists():
            _merge(merged, _read_config_file(project_config, "project"))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        _merge(merged, _read_config_file(config_file, "explicit"))

    _merge(merged, _route_flat_keys(_load_env_vars()))

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    _merge(merged, _route_flat_keys(overrides))
    return _build(merged)


def _build(merged: Dict[str, Any]) -> ModularityConfig:
    kwargs: Dict[str, Any] = {}
    try:
        for key, value in merged.items():
            section = _SECTIONS.get(key)
            if section is not None:
                if isinstance(value, section):
                    kwargs[key] = value
                    continue
                if not isinstance(value, dict):
                    raise InvalidConfigError(key, value, "expected a table")
                if key == "external_tool" and "command" in value:
                    value = dict(value, command=tuple(value["command"]))
                kwargs[key] = section(**value)
            elif key == "components":
                if not isinstance(value, dict):
                    raise InvalidConfigError(key, value, "expected a table of crate lists")
                kwargs[key] = {name: tuple(crates) for name, crates in value.items()}
            elif key == "pattern_order":
                kwargs[key] = tuple(value)
            else:
                kwargs[key] = value
        return ModularityConfig(**kwargs)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    """Merge one config layer into another, section tables key by key."""
    for key, value in source.items():
        if key in _SECTIONS and isinstance(value, dict) and isinstance(target.get(key), dict):
            target[key] = {**target[key], **value}
        else:
            target[key] = value


def _route_flat_keys(values: Dict[str, Any]) -> Dict[str, Any]:
    routed: Dict[str, Any] = {}
    section_fields = {
        name: {f.name for f in fields(cls)}
        for name, cls in _SECTIONS.items()
        if name in ("thresholds", "rules")
    }
    for key, value in values.items():
        for section, names in section_fields.items():
            if key in names:
                routed.setdefault(section, {})[key] = value
                break
        else:
            routed[key] = value
    return routed


def _load_env_vars() -> Dict[str, Any]:
    """Load configuration from MODSPLIT_* environment variables.

    Supported: top-level scalars (MODSPLIT_WORKERS, MODSPLIT_VERBOSITY) and
    every threshold/rule key (MODSPLIT_MAX_LOC_PER_FILE,
    MODSPLIT_NO_FUNCTIONS_IN_LIB_RS, ...).
    """
    candidates: Dict[str, Any] = {}
    for cls in (ModularityConfig, ThresholdConfig, RuleToggles):
        hints = get_type_hints(cls)
        for f in fields(cls):
            if f.name in _SECTIONS:
                continue
            candidates[f.name] = hints.get(f.name)

    result: Dict[str, Any] = {}
    for field_name, type_hint in candidates.items():
        env_key = f"MODSPLIT_{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None or type_hint is None:
            continue
        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")
        if parsed is not None:
            result[field_name] = parsed
    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the field's type.

    Returns None for types that cannot be expressed as one env value.
    """
    origin = getattr(type_hint, "__origin__", None)
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if origin in (tuple, dict, list):
        return None

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _read_config_file(path: Path, label: str) -> Dict[str, Any]:
    try:
        data = load_toml_file(path)
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Invalid {label} config '{path}': {e}")
    # pyproject-style nesting is accepted as well
    tool = data.get("tool", {})
    if isinstance(tool, dict) and "modsplit" in tool:
        return dict(tool["modsplit"])
    return data


def _toml_module():
    try:
        import tomllib
    except ModuleNotFoundError:
        try:
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    return tomllib


def load_toml_file(path: Path) -> Dict[str, Any]:
    """Load TOML file and return parsed dict.

    Raises:
        ConfigurationError: If tomllib/tomli not available
    """
    with open(path, "rb") as f:
        return _toml_module().load(f)


def loads_toml(text: str) -> Dict[str, Any]:
    return _toml_module().loads(text)
