"""Durable per-project ticket tree storage.

One JSON document per project lives under ``tickets_dir``::

    {"projectId": "...", "parentTickets": [...], "lastUpdated": "..."}

Lookup is tolerant: exact project id first, then the project name with a
trailing ``-<digits>`` stripped (only when that file embeds the same
``projectId``), then a scan of every ``*.json`` file for a
matching embedded ``projectId``. A missing file means "no tickets yet".
"""

from __future__ import annotations

from pathlib import Path

import structlog

from agentcompany.domain.ids import normalize_project_name
from agentcompany.domain.models import TicketFile, utc_now_iso
from agentcompany.errors import ValidationError
from agentcompany.utils.fs import read_json_object, write_json_atomic

_TICKET_FILE_SUFFIX = ".json"


class TicketStore:
    """Load/save ticket trees keyed by project id."""

    def __init__(self, tickets_dir: str | Path) -> None:
        self._dir = Path(tickets_dir)
        self._logger = structlog.get_logger(__name__)

    @property
    def tickets_dir(self) -> Path:
        return self._dir

    def path_for(self, project_id: str) -> Path:
        return self._dir / f"{project_id}{_TICKET_FILE_SUFFIX}"

    def resolve_path(self, project_id: str) -> Path | None:
        """Locate the file holding ``project_id``'s tree, or ``None``."""
        exact = self.path_for(project_id)
        if exact.is_file():
            return exact

        normalized = normalize_project_name(project_id)
        if normalized != project_id:
            candidate = self.path_for(normalized)
            if candidate.is_file() and self._holds_project(candidate, project_id):
                return candidate

        if not self._dir.is_dir():
            return None
        for candidate in sorted(self._dir.glob(f"*{_TICKET_FILE_SUFFIX}")):
            try:
                payload = read_json_object(candidate)
            except ValueError:
                self._logger.warning("ticket_file_unreadable", path=str(candidate))
                continue
            if payload is not None and payload.get("projectId") == project_id:
                return candidate
        return None

    def _holds_project(self, path: Path, project_id: str) -> bool:
        try:
            payload = read_json_object(path)
        except ValueError:
            return False
        return payload is not None and payload.get("projectId") == project_id

    def load(self, project_id: str) -> TicketFile | None:
        """Return the stored tree, ``None`` when the project has no file yet."""
        path = self.resolve_path(project_id)
        if path is None:
            return None
        try:
            payload = read_json_object(path)
        except ValueError as exc:
            raise ValidationError(f"corrupt ticket file for {project_id!r}: {exc}") from exc
        if payload is None:
            return None
        return TicketFile.from_dict(payload)

    def save(self, ticket_file: TicketFile, *, path: Path | None = None) -> Path:
        """Atomically persist ``ticket_file``; returns the written path."""
        target = path if path is not None else self.path_for(ticket_file.project_id)
        ticket_file.last_updated = utc_now_iso()
        write_json_atomic(target, ticket_file.to_dict())
        self._logger.debug(
            "ticket_file_saved",
            project_id=ticket_file.project_id,
            path=str(target),
            parent_count=len(ticket_file.parent_tickets),
        )
        return target

    def list_project_ids(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        project_ids: list[str] = []
        for candidate in sorted(self._dir.glob(f"*{_TICKET_FILE_SUFFIX}")):
            try:
                payload = read_json_object(candidate)
            except ValueError:
                continue
            if payload is None:
                continue
            embedded = payload.get("projectId")
            project_ids.append(embedded if isinstance(embedded, str) else candidate.stem)
        return project_ids


__all__ = ["TicketStore"]
