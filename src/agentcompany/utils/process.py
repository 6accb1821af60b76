"""Bounded-time subprocess execution with process-group termination.

Every child is started in its own session so that a timeout can signal the
whole process group; tools such as coding agents spawn helpers of their own,
and those must not outlive the bound.
"""

from __future__ import annotations

import asyncio
import os
import signal
import time
from collections.abc import Mapping, Sequence
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Final

_EXIT_CODE_MAX: Final[int] = 255
_SIGNAL_EXIT_BASE: Final[int] = 128


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    """Captured output of a process that exited on its own."""

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int


class ProcessTimeoutError(TimeoutError):
    """The process exceeded ``timeout_seconds`` and its group was terminated."""

    def __init__(self, *, argv: Sequence[str], timeout_seconds: float, duration_ms: int) -> None:
        self.argv = tuple(argv)
        self.timeout_seconds = timeout_seconds
        self.duration_ms = duration_ms
        super().__init__(f"{self.argv[0]} timed out after {timeout_seconds}s")


async def run_process(
    argv: Sequence[str],
    *,
    cwd: str | Path,
    timeout_seconds: float,
    kill_grace_seconds: float,
    env: Mapping[str, str] | None = None,
) -> ProcessOutcome:
    """Run ``argv`` to completion and capture stdout/stderr in full.

    Raises ``FileNotFoundError`` when the executable cannot be resolved,
    other ``OSError`` subclasses on spawn/I/O failure, and
    ``ProcessTimeoutError`` after terminating the process group on timeout.
    """

    if not argv:
        raise ValueError("argv must not be empty")
    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0")

    started_ns = time.monotonic_ns()
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd),
        env=None if env is None else dict(env),
        start_new_session=True,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout_seconds
        )
    except TimeoutError:
        await terminate_process_group(process, grace_seconds=kill_grace_seconds)
        raise ProcessTimeoutError(
            argv=argv,
            timeout_seconds=timeout_seconds,
            duration_ms=_elapsed_ms(started_ns),
        ) from None
    except asyncio.CancelledError:
        await terminate_process_group(process, grace_seconds=0.0)
        raise

    return ProcessOutcome(
        stdout=_normalize_output_text(stdout_bytes),
        stderr=_normalize_output_text(stderr_bytes),
        exit_code=normalize_exit_code(process.returncode),
        duration_ms=_elapsed_ms(started_ns),
    )


async def terminate_process_group(
    process: asyncio.subprocess.Process, *, grace_seconds: float
) -> None:
    """SIGTERM the group, SIGKILL after ``grace_seconds``, then reap the leader."""

    if process.returncode is None:
        if grace_seconds > 0:
            _signal_group(process, signal.SIGTERM)
            try:
                await asyncio.wait_for(process.wait(), timeout=grace_seconds)
            except TimeoutError:
                _signal_group(process, signal.SIGKILL)
                await process.wait()
        else:
            _signal_group(process, signal.SIGKILL)
            await process.wait()
    # Helpers that ignored SIGTERM may still hold the group.
    _signal_group(process, signal.SIGKILL)


def normalize_exit_code(returncode: int | None) -> int:
    """Map to 0..255; death by signal N becomes 128 + N like a shell reports it."""

    if returncode is None:
        return 1
    if returncode < 0:
        return min(_SIGNAL_EXIT_BASE - returncode, _EXIT_CODE_MAX)
    return min(returncode, _EXIT_CODE_MAX)


def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    if os.name == "nt":
        with suppress(ProcessLookupError):
            process.kill()
        return
    with suppress(ProcessLookupError, PermissionError):
        os.killpg(process.pid, sig)


def _elapsed_ms(started_ns: int) -> int:
    delta_ns = time.monotonic_ns() - started_ns
    if delta_ns < 0:
        return 0
    return delta_ns // 1_000_000


def _normalize_output_text(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    return text.replace("\r\n", "\n").replace("\r", "\n")


__all__ = [
    "ProcessOutcome",
    "ProcessTimeoutError",
    "normalize_exit_code",
    "run_process",
    "terminate_process_group",
]
