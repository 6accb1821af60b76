"""Module entrypoint for ``python -m agentcompany``."""

from __future__ import annotations

from agentcompany.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
