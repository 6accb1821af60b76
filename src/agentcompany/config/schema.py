"""
agentcompany configuration schema and validation.

File: src/agentcompany/config/schema.py

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Deterministic deep-merge helpers.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject unknown keys at every level.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from agentcompany.constants import (
    AVAILABILITY_CACHE_TTL_SECONDS,
    CONFIG_SCHEMA_VERSION,
    DEFAULT_AGENT_TIMEOUT_SECONDS,
    DEFAULT_COVERAGE_THRESHOLD,
    DEFAULT_KILL_GRACE_SECONDS,
    LOG_DIR,
    RUN_STATE_DIR,
    RUNS_DIR,
    TICKETS_DIR,
    WAIVERS_DIR,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

PATH_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("paths", "tickets_dir"),
    ("paths", "runs_dir"),
    ("paths", "run_state_dir"),
    ("paths", "waivers_dir"),
    ("paths", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    tickets_dir: str
    runs_dir: str
    run_state_dir: str
    waivers_dir: str
    log_dir: str


class AgentsConfig(TypedDict):
    preferred: str
    priority: list[str]
    default_timeout_seconds: float
    kill_grace_seconds: float
    availability_cache_ttl_seconds: float
    max_concurrent_dispatch: int
    skip_permissions: bool


class QAConfig(TypedDict):
    test_command: list[str]
    lint_command: list[str]
    timeout_seconds: float


class JudgmentConfig(TypedDict):
    coverage_threshold: float


class ObservabilityConfig(TypedDict):
    log_level: str
    log_to_stdout: bool


class AgentCompanyConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    agents: AgentsConfig
    qa: QAConfig
    judgment: JudgmentConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[AgentCompanyConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "paths": {
        "tickets_dir": TICKETS_DIR.as_posix(),
        "runs_dir": RUNS_DIR.as_posix(),
        "run_state_dir": RUN_STATE_DIR.as_posix(),
        "waivers_dir": WAIVERS_DIR.as_posix(),
        "log_dir": LOG_DIR.as_posix(),
    },
    "agents": {
        "preferred": "",
        "priority": ["claude-code", "opencode", "kiro-cli", "codex-cli"],
        "default_timeout_seconds": DEFAULT_AGENT_TIMEOUT_SECONDS,
        "kill_grace_seconds": DEFAULT_KILL_GRACE_SECONDS,
        "availability_cache_ttl_seconds": AVAILABILITY_CACHE_TTL_SECONDS,
        "max_concurrent_dispatch": 4,
        "skip_permissions": True,
    },
    "qa": {
        "test_command": ["npx", "vitest", "run", "--coverage"],
        "lint_command": ["npx", "eslint", "."],
        "timeout_seconds": DEFAULT_AGENT_TIMEOUT_SECONDS,
    },
    "judgment": {"coverage_threshold": DEFAULT_COVERAGE_THRESHOLD},
    "observability": {"log_level": "INFO", "log_to_stdout": False},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> AgentCompanyConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade agentcompany.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the agentcompany runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base``; lists and scalars are replaced, not merged."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    validators: dict[str, Callable[[Mapping[str, object], str, _IssueCollector], dict[str, Any]]]
    validators = {
        "meta": _validate_meta,
        "paths": _validate_paths,
        "agents": _validate_agents,
        "qa": _validate_qa,
        "judgment": _validate_judgment,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(payload, set(validators), "", issues)
    _require_keys(payload, set(validators), "", issues)

    out: dict[str, Any] = {}
    for key in sorted(validators):
        _section(payload, key=key, issues=issues, validator=validators[key], out=out)
    return out


def _section(
    payload: Mapping[str, object],
    *,
    key: str,
    issues: _IssueCollector,
    validator: Callable[[Mapping[str, object], str, _IssueCollector], dict[str, Any]],
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        return
    section_obj = _as_object(raw, key, issues)
    if section_obj is None:
        return
    out[key] = validator(section_obj, key, issues)


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        field = _join(path, "schema_version")
        parsed = _as_int(payload["schema_version"], field, issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(field, migration_guidance(parsed))
    return out


def _validate_paths(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {field for _, field in PATH_FIELDS}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(allowed):
        if key in payload:
            parsed = _as_path_text(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_agents(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {
        "preferred",
        "priority",
        "default_timeout_seconds",
        "kill_grace_seconds",
        "availability_cache_ttl_seconds",
        "max_concurrent_dispatch",
        "skip_permissions",
    }
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "preferred" in payload:
        preferred = payload["preferred"]
        if isinstance(preferred, str):
            out["preferred"] = preferred.strip()
        else:
            issues.add(
                _join(path, "preferred"), f"expected string, got {type(preferred).__name__}"
            )
    if "priority" in payload:
        priority = _as_str_list(payload["priority"], _join(path, "priority"), issues)
        if priority is not None:
            if len(set(priority)) != len(priority):
                issues.add(_join(path, "priority"), "must not contain duplicate names")
            else:
                out["priority"] = priority
    for key in ("default_timeout_seconds", "kill_grace_seconds"):
        if key in payload:
            parsed = _as_float(payload[key], _join(path, key), issues, minimum=0.0)
            if parsed is not None:
                if parsed == 0.0:
                    issues.add(_join(path, key), "must be > 0")
                else:
                    out[key] = parsed
    if "availability_cache_ttl_seconds" in payload:
        ttl = _as_float(
            payload["availability_cache_ttl_seconds"],
            _join(path, "availability_cache_ttl_seconds"),
            issues,
            minimum=0.0,
        )
        if ttl is not None:
            out["availability_cache_ttl_seconds"] = ttl
    if "max_concurrent_dispatch" in payload:
        parsed_max = _as_int(
            payload["max_concurrent_dispatch"],
            _join(path, "max_concurrent_dispatch"),
            issues,
            minimum=1,
        )
        if parsed_max is not None:
            out["max_concurrent_dispatch"] = parsed_max
    if "skip_permissions" in payload:
        parsed_skip = _as_bool(
            payload["skip_permissions"], _join(path, "skip_permissions"), issues
        )
        if parsed_skip is not None:
            out["skip_permissions"] = parsed_skip
    return out


def _validate_qa(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"test_command", "lint_command", "timeout_seconds"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    # An empty command list disables that step.
    for key in ("test_command", "lint_command"):
        if key in payload:
            parsed = _as_str_list(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    if "timeout_seconds" in payload:
        parsed_timeout = _as_float(
            payload["timeout_seconds"], _join(path, "timeout_seconds"), issues, minimum=0.0
        )
        if parsed_timeout is not None:
            if parsed_timeout == 0.0:
                issues.add(_join(path, "timeout_seconds"), "must be > 0")
            else:
                out["timeout_seconds"] = parsed_timeout
    return out


def _validate_judgment(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"coverage_threshold"}, path, issues)
    _require_keys(payload, {"coverage_threshold"}, path, issues)

    out: dict[str, Any] = {}
    if "coverage_threshold" in payload:
        field = _join(path, "coverage_threshold")
        parsed = _as_float(payload["coverage_threshold"], field, issues, minimum=0.0)
        if parsed is not None:
            if parsed > 100.0:
                issues.add(field, "must be <= 100")
            else:
                out["coverage_threshold"] = parsed
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_to_stdout"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        level = payload["log_level"]
        parsed_level = _as_enum(
            level.upper() if isinstance(level, str) else level,
            _join(path, "log_level"),
            issues,
            allowed_values=LOG_LEVELS,
        )
        if parsed_level is not None:
            out["log_level"] = parsed_level
    if "log_to_stdout" in payload:
        parsed_stdout = _as_bool(payload["log_to_stdout"], _join(path, "log_to_stdout"), issues)
        if parsed_stdout is not None:
            out["log_to_stdout"] = parsed_stdout
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    out: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is None:
            return None
        out.append(parsed)
    return out


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            _merge_into(existing, value)
        else:
            target[key] = copy.deepcopy(value)


__all__ = [
    "AgentCompanyConfig",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
