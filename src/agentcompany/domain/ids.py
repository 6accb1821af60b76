"""Ticket and run identifier generation, classification, and parsing.

Ticket ids are hierarchical and human readable:

- parent      ``<projectId>-NNNN``
- child       ``<parentId>-NN``
- grandchild  ``<childId>-NNN``

Each new suffix is the maximum existing suffix at that level plus one, so ids
are never reused even when tickets are archived. Run ids are ``run-<ULID>``.
"""

from __future__ import annotations

import re
import secrets
import time
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Final

CROCKFORD_BASE32_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ULID_LENGTH: Final[int] = 26
ULID_RANDOM_BYTES: Final[int] = 10
ULID_MAX_TIMESTAMP_MS: Final[int] = (1 << 48) - 1

RUN_ID_PREFIX: Final[str] = "run"

PARENT_SUFFIX_WIDTH: Final[int] = 4
CHILD_SUFFIX_WIDTH: Final[int] = 2
GRANDCHILD_SUFFIX_WIDTH: Final[int] = 3

_GRANDCHILD_ID_RE: Final[re.Pattern[str]] = re.compile(r"^.+-\d{4}-\d{2}-\d{3}$")
_CHILD_ID_RE: Final[re.Pattern[str]] = re.compile(r"^.+-\d{4}-\d{2}$")
_PARENT_ID_RE: Final[re.Pattern[str]] = re.compile(r"^.+-\d{4}$")
_PROJECT_FROM_TICKET_RE: Final[re.Pattern[str]] = re.compile(r"^(.+)-\d{4}")
_TRAILING_NUMBER_RE: Final[re.Pattern[str]] = re.compile(r"-\d+$")
_RUN_ID_RE: Final[re.Pattern[str]] = re.compile(
    rf"^{RUN_ID_PREFIX}-[{CROCKFORD_BASE32_ALPHABET}]{{{ULID_LENGTH}}}$"
)

_RandBytes = Callable[[int], bytes]


class TicketLevel(StrEnum):
    PARENT = "parent"
    CHILD = "child"
    GRANDCHILD = "grandchild"


def ticket_level(ticket_id: str) -> TicketLevel | None:
    """Classify a ticket id by shape; most specific pattern wins."""
    if _GRANDCHILD_ID_RE.match(ticket_id):
        return TicketLevel.GRANDCHILD
    if _CHILD_ID_RE.match(ticket_id):
        return TicketLevel.CHILD
    if _PARENT_ID_RE.match(ticket_id):
        return TicketLevel.PARENT
    return None


def project_id_from_ticket_id(ticket_id: str) -> str | None:
    """Extract the owning project id from any ticket id level."""
    level = ticket_level(ticket_id)
    if level is None:
        return None
    parent_id = parent_ticket_id_of(ticket_id)
    match = _PROJECT_FROM_TICKET_RE.match(parent_id)
    if match is None:
        return None
    return match.group(1)


def parent_ticket_id_of(ticket_id: str) -> str:
    """Return the top-level parent ticket id for a ticket id of any level."""
    level = ticket_level(ticket_id)
    if level is TicketLevel.GRANDCHILD:
        return ticket_id.rsplit("-", 2)[0]
    if level is TicketLevel.CHILD:
        return ticket_id.rsplit("-", 1)[0]
    return ticket_id


def child_ticket_id_of(grandchild_id: str) -> str:
    return grandchild_id.rsplit("-", 1)[0]


def normalize_project_name(project_id: str) -> str:
    """Strip a trailing ``-<digits>`` suffix, used as a lookup fallback."""
    return _TRAILING_NUMBER_RE.sub("", project_id)


def next_parent_ticket_id(project_id: str, existing_ids: Iterable[str]) -> str:
    return _next_id(project_id, existing_ids, PARENT_SUFFIX_WIDTH)


def next_child_ticket_id(parent_id: str, existing_ids: Iterable[str]) -> str:
    return _next_id(parent_id, existing_ids, CHILD_SUFFIX_WIDTH)


def next_grandchild_ticket_id(child_id: str, existing_ids: Iterable[str]) -> str:
    return _next_id(child_id, existing_ids, GRANDCHILD_SUFFIX_WIDTH)


def generate_ulid(
    *,
    timestamp_ms: int | None = None,
    randbytes: _RandBytes | None = None,
) -> str:
    """Generate a ULID as a 26-character uppercase Crockford Base32 string."""
    ts_ms = time.time_ns() // 1_000_000 if timestamp_ms is None else timestamp_ms
    if not 0 <= ts_ms <= ULID_MAX_TIMESTAMP_MS:
        raise ValueError(
            f"timestamp_ms out of range: expected 0..{ULID_MAX_TIMESTAMP_MS}, got {ts_ms}"
        )
    provider = secrets.token_bytes if randbytes is None else randbytes
    raw = bytes(provider(ULID_RANDOM_BYTES))
    if len(raw) != ULID_RANDOM_BYTES:
        raise ValueError(f"randbytes must return exactly {ULID_RANDOM_BYTES} bytes")
    value = (ts_ms << 80) | int.from_bytes(raw, "big")
    return _encode_crockford_base32(value, ULID_LENGTH)


def generate_run_id(*, timestamp_ms: int | None = None, randbytes: _RandBytes | None = None) -> str:
    return f"{RUN_ID_PREFIX}-{generate_ulid(timestamp_ms=timestamp_ms, randbytes=randbytes)}"


def is_run_id(value: str) -> bool:
    return bool(_RUN_ID_RE.match(value))


def _next_id(prefix: str, existing_ids: Iterable[str], width: int) -> str:
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d{{{width}}})$")
    highest = 0
    for existing in existing_ids:
        match = pattern.match(existing)
        if match is not None:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{highest + 1:0{width}d}"


def _encode_crockford_base32(value: int, length: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")

    mask = 0b11111
    chars = ["0"] * length
    working = value
    for index in range(length - 1, -1, -1):
        chars[index] = CROCKFORD_BASE32_ALPHABET[working & mask]
        working >>= 5

    if working != 0:
        raise ValueError(f"value does not fit into {length} Crockford Base32 characters")
    return "".join(chars)


__all__ = [
    "CHILD_SUFFIX_WIDTH",
    "GRANDCHILD_SUFFIX_WIDTH",
    "PARENT_SUFFIX_WIDTH",
    "RUN_ID_PREFIX",
    "TicketLevel",
    "child_ticket_id_of",
    "generate_run_id",
    "generate_ulid",
    "is_run_id",
    "next_child_ticket_id",
    "next_grandchild_ticket_id",
    "next_parent_ticket_id",
    "normalize_project_name",
    "parent_ticket_id_of",
    "project_id_from_ticket_id",
    "ticket_level",
]
