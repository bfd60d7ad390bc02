"""ConsentEventStore — writes normalized events, tolerating an older schema.

The store inserts every event with its payload_hash. Databases migrated only
to revision 001 lack that column; the backend then reports a
MissingColumnError and the row is written again without the hash. A unique
violation on payload_hash means the dedup index caught a repeat submission
and is treated as success.

Backends implement a single coroutine, ``insert(row)``, and translate their
native failures into the StorageError hierarchy via classify_backend_error.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

from consentlog.errors import DuplicateEventError, MissingColumnError, StorageError
from consentlog.ingest.hashing import compute_payload_hash
from consentlog.schemas.consent import ConsentEvent

logger = logging.getLogger(__name__)

TABLE_NAME = "consent_events"
HASH_COLUMN = "payload_hash"

# PostgreSQL SQLSTATEs and PostgREST codes
UNDEFINED_COLUMN_CODES: frozenset[str] = frozenset({"42703", "PGRST204"})
UNIQUE_VIOLATION_CODES: frozenset[str] = frozenset({"23505"})

# column "payload_hash" of relation ... / Could not find the 'payload_hash' column ...
_COLUMN_IN_MESSAGE = re.compile(r"column \"([^\"]+)\"|'([^']+)' column")


class ConsentBackend(Protocol):
    """Anything that can insert one row into consent_events."""

    async def insert(self, row: dict[str, Any]) -> None: ...


def classify_backend_error(code: str | None, message: str) -> StorageError:
    """Map a backend error code/message onto the StorageError hierarchy.

    Codes are authoritative; the message substring check only applies when
    the backend gave no code at all.
    """
    if code in UNIQUE_VIOLATION_CODES:
        return DuplicateEventError(message)
    if code in UNDEFINED_COLUMN_CODES or (code is None and HASH_COLUMN in message):
        match = _COLUMN_IN_MESSAGE.search(message)
        column = next((g for g in match.groups() if g), None) if match else None
        return MissingColumnError(column, message)
    return StorageError(message)


class ConsentEventStore:
    """Stateless insert logic over a ConsentBackend."""

    def __init__(self, backend: ConsentBackend) -> None:
        self._backend = backend

    async def store(self, event: ConsentEvent) -> None:
        """Persist an event. Raises StorageError on any non-recoverable failure."""
        row = event.to_row()
        try:
            try:
                await self._backend.insert({**row, HASH_COLUMN: compute_payload_hash(event)})
            except MissingColumnError as exc:
                if exc.column not in (None, HASH_COLUMN):
                    raise
                logger.warning("%s has no %s column, storing without dedup key", TABLE_NAME, HASH_COLUMN)
                await self._backend.insert(row)
        except DuplicateEventError:
            logger.debug("Duplicate consent event suppressed: domain=%s", event.domain)
