"""Output rendering for the agentcompany CLI.

Plain-text, deterministic output. Respects the ``NO_COLOR`` env var and the
``--no-color`` flag; when color is allowed, pass/fail markers are tinted with
ANSI escapes.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

_GREEN: Final[str] = "\x1b[32m"
_RED: Final[str] = "\x1b[31m"
_YELLOW: Final[str] = "\x1b[33m"
_RESET: Final[str] = "\x1b[0m"


def _color_allowed(no_color_flag: bool) -> bool:
    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Thin CLI output renderer."""

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)

    @property
    def color(self) -> bool:
        return self._color

    def heading(self, text: str) -> None:
        print(text)

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {'-' if value is None else value}")

    def text(self, line: str) -> None:
        print(line)

    def blank(self) -> None:
        print()

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        print(f"\n{title}")

    def warning(self, text: str) -> None:
        print(f"  {self._tint('Warning:', _YELLOW)} {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table; nothing is printed for zero rows."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        print(f"  {_pad(list(headers))}")
        print(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            print(f"  {_pad(list(row))}")

    def next_steps(self, steps: Sequence[str]) -> None:
        if not steps:
            return
        self.section("Next steps:")
        for step in steps:
            print(f"  $ {step}")

    def ok(self, label: str) -> None:
        print(f"  {self._tint('OK', _GREEN)}  {label}")

    def fail(self, label: str) -> None:
        print(f"  {self._tint('FAIL', _RED)}  {label}")

    def _tint(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{color}{text}{_RESET}"


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
