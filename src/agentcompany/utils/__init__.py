"""Utility exports for filesystem, process, and concurrency helpers."""

from agentcompany.utils.concurrency import (
    BoundedSemaphore,
    CancellationToken,
    KeyedLock,
    TaskOutcome,
    WorkerPool,
)
from agentcompany.utils.fs import atomic_write, read_json_object, write_json_atomic
from agentcompany.utils.process import (
    ProcessOutcome,
    ProcessTimeoutError,
    normalize_exit_code,
    run_process,
)

__all__ = [
    "BoundedSemaphore",
    "CancellationToken",
    "KeyedLock",
    "ProcessOutcome",
    "ProcessTimeoutError",
    "TaskOutcome",
    "WorkerPool",
    "atomic_write",
    "normalize_exit_code",
    "read_json_object",
    "run_process",
    "write_json_atomic",
]
