"""Direct PostgreSQL backend — SQLAlchemy Core insert over an async session."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from consentlog.models.consent_event import ConsentEventRecord
from consentlog.storage.store import classify_backend_error

logger = logging.getLogger(__name__)


def _sqlstate(exc: DBAPIError) -> str | None:
    """SQLSTATE from the driver exception (asyncpg: sqlstate, psycopg: pgcode)."""
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class SqlConsentBackend:
    """Inserts consent rows in their own transaction."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(self, row: dict[str, Any]) -> None:
        # Core insert names only the supplied columns, so a row without
        # payload_hash works against a table that lacks it.
        stmt = insert(ConsentEventRecord.__table__).values(**row)
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(stmt)
        except DBAPIError as exc:
            raise classify_backend_error(_sqlstate(exc), str(exc.orig or exc)) from exc
