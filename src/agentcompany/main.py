"""Executable CLI entrypoint for ``agentcompany``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    """Process exit-code contract."""

    SUCCESS = 0
    FAILURE = 1
    USAGE_ERROR = 2


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m agentcompany`` and the console script."""

    try:
        from agentcompany.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except KeyboardInterrupt:
        _write_stderr("interrupted")
        return int(ExitCode.FAILURE)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        _emit_failure(exc, known=_is_known_error(exc))
        return int(ExitCode.FAILURE)


def _normalize_exit_code(raw_code: object) -> int:
    if isinstance(raw_code, int) and raw_code in {0, 1, 2}:
        return raw_code
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, str) and raw_code.strip():
        _write_stderr(raw_code.strip())
    return int(ExitCode.FAILURE)


def _is_known_error(exc: BaseException) -> bool:
    known_types = _load_known_error_types()
    return any(isinstance(item, known_types) for item in _iter_exception_chain(exc))


def _load_known_error_types() -> tuple[type[BaseException], ...]:
    from agentcompany.config.loader import ConfigLoadError
    from agentcompany.config.schema import ConfigValidationError
    from agentcompany.errors import AgentCompanyError

    return (AgentCompanyError, ConfigLoadError, ConfigValidationError, OSError)


def _iter_exception_chain(exc: BaseException) -> list[BaseException]:
    seen: set[int] = set()
    items: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None:
        marker = id(current)
        if marker in seen:
            break
        seen.add(marker)
        items.append(current)
        if current.__cause__ is not None:
            current = current.__cause__
            continue
        if current.__context__ is not None and not current.__suppress_context__:
            current = current.__context__
            continue
        break
    return items


def _emit_failure(exc: BaseException, *, known: bool) -> None:
    if not known:
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        return
    _write_stderr(f"error: {str(exc).strip() or exc.__class__.__name__}")


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint"]
