"""Stable constants shared across the ticket, agent, and quality layers."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Default runtime paths (relative to the repo root unless overridden by config).
TICKETS_DIR: Final[PurePosixPath] = PurePosixPath("runtime/state/tickets")
RUNS_DIR: Final[PurePosixPath] = PurePosixPath("runtime/runs")
RUN_STATE_DIR: Final[PurePosixPath] = PurePosixPath("runtime/state/runs")
WAIVERS_DIR: Final[PurePosixPath] = PurePosixPath("workflows/waivers")
LOG_DIR: Final[PurePosixPath] = PurePosixPath("runtime/logs")

# Persisted artifact names inside a run directory.
RUN_RESULT_FILENAME: Final[str] = "result.json"
JUDGMENT_FILENAME: Final[str] = "judgment.json"
RUN_STATE_FILENAME: Final[str] = "state.json"

# Coding agent subprocess defaults (seconds).
DEFAULT_AGENT_TIMEOUT_SECONDS: Final[float] = 600.0
DEFAULT_KILL_GRACE_SECONDS: Final[float] = 5.0
VERSION_PROBE_TIMEOUT_SECONDS: Final[float] = 5.0
AVAILABILITY_CACHE_TTL_SECONDS: Final[float] = 60.0

# QA diagnostics.
RAW_EXCERPT_LIMIT: Final[int] = 500
DEFAULT_COVERAGE_THRESHOLD: Final[float] = 80.0

__all__ = [
    "AVAILABILITY_CACHE_TTL_SECONDS",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_AGENT_TIMEOUT_SECONDS",
    "DEFAULT_COVERAGE_THRESHOLD",
    "DEFAULT_KILL_GRACE_SECONDS",
    "JUDGMENT_FILENAME",
    "LOG_DIR",
    "RAW_EXCERPT_LIMIT",
    "RUNS_DIR",
    "RUN_RESULT_FILENAME",
    "RUN_STATE_DIR",
    "RUN_STATE_FILENAME",
    "TICKETS_DIR",
    "VERSION_PROBE_TIMEOUT_SECONDS",
    "WAIVERS_DIR",
]
