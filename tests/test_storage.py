"""Tests for consent persistence — fallback logic, error mapping, backends."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from sqlalchemy.exc import DBAPIError

from consentlog.config import BackendSettings
from consentlog.errors import (
    ConfigurationError,
    DuplicateEventError,
    MissingColumnError,
    StorageError,
)
from consentlog.models.enums import ConsentAction
from consentlog.schemas.consent import ConsentChoices, ConsentEvent
from consentlog.storage.factory import build_store
from consentlog.storage.sql import SqlConsentBackend
from consentlog.storage.store import ConsentEventStore, classify_backend_error
from consentlog.storage.supabase import SupabaseConsentBackend

# ── Helpers ──────────────────────────────────────────────────────────


def _make_event() -> ConsentEvent:
    return ConsentEvent(
        ts=1_700_000_000_000,
        action=ConsentAction.REJECT_ALL,
        consent=ConsentChoices(essential=True),
        consent_uid="uid-1",
        domain="turmundleufer.de",
    )


class FakeDriverError(Exception):
    """Stands in for an asyncpg exception carrying a SQLSTATE."""

    def __init__(self, message: str, sqlstate: str | None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _make_session_factory(execute_side_effect=None):
    """Build a mock async_sessionmaker whose sessions support `async with`."""
    session = MagicMock()
    session.execute = AsyncMock(side_effect=execute_side_effect)

    begin_cm = MagicMock()
    begin_cm.__aenter__ = AsyncMock(return_value=None)
    begin_cm.__aexit__ = AsyncMock(return_value=False)
    session.begin.return_value = begin_cm

    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)

    return MagicMock(return_value=session_cm), session


# ── classify_backend_error ───────────────────────────────────────────


class TestClassifyBackendError:
    def test_postgres_undefined_column(self):
        err = classify_backend_error(
            "42703", 'column "payload_hash" of relation "consent_events" does not exist',
        )
        assert isinstance(err, MissingColumnError)
        assert err.column == "payload_hash"

    def test_postgrest_schema_cache(self):
        err = classify_backend_error(
            "PGRST204", "Could not find the 'payload_hash' column of 'consent_events' in the schema cache",
        )
        assert isinstance(err, MissingColumnError)
        assert err.column == "payload_hash"

    def test_other_missing_column(self):
        err = classify_backend_error("42703", 'column "region" of relation "consent_events" does not exist')
        assert isinstance(err, MissingColumnError)
        assert err.column == "region"

    def test_unique_violation(self):
        err = classify_backend_error(
            "23505", 'duplicate key value violates unique constraint "consent_events_payload_hash_key"',
        )
        assert isinstance(err, DuplicateEventError)

    def test_message_match_without_code(self):
        err = classify_backend_error(None, "payload_hash is unknown")
        assert isinstance(err, MissingColumnError)
        assert err.column is None

    def test_code_overrides_message(self):
        err = classify_backend_error("57014", "canceling statement touching payload_hash")
        assert type(err) is StorageError

    def test_generic(self):
        err = classify_backend_error("08006", "connection failure")
        assert type(err) is StorageError
        assert err.public_message == "Database error"
        assert "connection failure" in str(err)


# ── ConsentEventStore ────────────────────────────────────────────────


class TestConsentEventStore:
    @pytest.mark.asyncio()
    async def test_inserts_with_hash(self):
        backend = AsyncMock()
        store = ConsentEventStore(backend)

        await store.store(_make_event())

        backend.insert.assert_awaited_once()
        row = backend.insert.call_args[0][0]
        assert row["domain"] == "turmundleufer.de"
        assert row["action"] == "reject_all"
        assert row["consent"] == {"essential": True, "analytics": False, "functional": False, "marketing": False}
        assert row["consent_uid"] == "uid-1"
        assert row["gpc"] is False
        assert len(row["payload_hash"]) == 64
        assert "ts" not in row

    @pytest.mark.asyncio()
    async def test_falls_back_without_hash(self):
        backend = AsyncMock()
        backend.insert.side_effect = [MissingColumnError("payload_hash"), None]
        store = ConsentEventStore(backend)

        await store.store(_make_event())

        assert backend.insert.await_count == 2
        assert "payload_hash" in backend.insert.call_args_list[0][0][0]
        assert "payload_hash" not in backend.insert.call_args_list[1][0][0]

    @pytest.mark.asyncio()
    async def test_falls_back_when_column_unknown(self):
        backend = AsyncMock()
        backend.insert.side_effect = [MissingColumnError(None), None]

        await ConsentEventStore(backend).store(_make_event())

        assert backend.insert.await_count == 2

    @pytest.mark.asyncio()
    async def test_other_missing_column_is_fatal(self):
        backend = AsyncMock()
        backend.insert.side_effect = MissingColumnError("region")

        with pytest.raises(MissingColumnError):
            await ConsentEventStore(backend).store(_make_event())
        backend.insert.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_fallback_failure_surfaces(self):
        backend = AsyncMock()
        backend.insert.side_effect = [MissingColumnError("payload_hash"), StorageError("disk full")]

        with pytest.raises(StorageError, match="disk full"):
            await ConsentEventStore(backend).store(_make_event())

    @pytest.mark.asyncio()
    async def test_generic_error_not_retried(self):
        backend = AsyncMock()
        backend.insert.side_effect = StorageError("timeout")

        with pytest.raises(StorageError):
            await ConsentEventStore(backend).store(_make_event())
        backend.insert.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_duplicate_is_success(self):
        backend = AsyncMock()
        backend.insert.side_effect = DuplicateEventError("duplicate key")

        await ConsentEventStore(backend).store(_make_event())

        backend.insert.assert_awaited_once()


# ── SqlConsentBackend ────────────────────────────────────────────────


class TestSqlConsentBackend:
    @pytest.mark.asyncio()
    async def test_executes_insert(self):
        factory, session = _make_session_factory()
        backend = SqlConsentBackend(factory)

        await backend.insert({"domain": "turmundleufer.de", "action": "accept_all", "consent": {}})

        session.execute.assert_awaited_once()
        stmt = session.execute.call_args[0][0]
        assert stmt.table.name == "consent_events"
        session.begin.assert_called_once()

    @pytest.mark.asyncio()
    async def test_undefined_column_mapped(self):
        orig = FakeDriverError('column "payload_hash" of relation "consent_events" does not exist', "42703")
        factory, _ = _make_session_factory(DBAPIError("INSERT", {}, orig))

        with pytest.raises(MissingColumnError) as exc_info:
            await SqlConsentBackend(factory).insert({"domain": "x", "payload_hash": "ab"})
        assert exc_info.value.column == "payload_hash"

    @pytest.mark.asyncio()
    async def test_unique_violation_mapped(self):
        orig = FakeDriverError("duplicate key value violates unique constraint", "23505")
        factory, _ = _make_session_factory(DBAPIError("INSERT", {}, orig))

        with pytest.raises(DuplicateEventError):
            await SqlConsentBackend(factory).insert({"domain": "x"})

    @pytest.mark.asyncio()
    async def test_other_error_mapped(self):
        orig = FakeDriverError("relation does not exist", "42P01")
        factory, _ = _make_session_factory(DBAPIError("INSERT", {}, orig))

        with pytest.raises(StorageError) as exc_info:
            await SqlConsentBackend(factory).insert({"domain": "x"})
        assert not isinstance(exc_info.value, MissingColumnError)


# ── SupabaseConsentBackend ───────────────────────────────────────────


def _backend_with(handler) -> SupabaseConsentBackend:
    return SupabaseConsentBackend(
        "https://project.supabase.co/",
        "service-key",
        transport=httpx.MockTransport(handler),
    )


class TestSupabaseConsentBackend:
    @pytest.mark.asyncio()
    async def test_posts_row(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        await _backend_with(handler).insert({"domain": "turmundleufer.de", "gpc": True})

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://project.supabase.co/rest/v1/consent_events"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["authorization"] == "Bearer service-key"
        assert request.headers["prefer"] == "return=minimal"
        assert json.loads(request.content) == {"domain": "turmundleufer.de", "gpc": True}

    @pytest.mark.asyncio()
    async def test_lone_surrogate_sent_escaped(self):
        seen: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.content)
            return httpx.Response(201)

        await _backend_with(handler).insert({"version": "\ud800"})

        assert seen[0] == b'{"version": "\\ud800"}'

    @pytest.mark.asyncio()
    async def test_missing_column(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={
                "code": "PGRST204",
                "message": "Could not find the 'payload_hash' column of 'consent_events' in the schema cache",
            })

        with pytest.raises(MissingColumnError) as exc_info:
            await _backend_with(handler).insert({"payload_hash": "ab"})
        assert exc_info.value.column == "payload_hash"

    @pytest.mark.asyncio()
    async def test_duplicate(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})

        with pytest.raises(DuplicateEventError):
            await _backend_with(handler).insert({"payload_hash": "ab"})

    @pytest.mark.asyncio()
    async def test_non_json_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(StorageError, match="Bad Gateway"):
            await _backend_with(handler).insert({"domain": "x"})

    @pytest.mark.asyncio()
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StorageError):
            await _backend_with(handler).insert({"domain": "x"})

    @pytest.mark.asyncio()
    async def test_end_to_end_fallback(self):
        """Store succeeds against a schema without payload_hash."""
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            bodies.append(body)
            if "payload_hash" in body:
                return httpx.Response(400, json={
                    "code": "42703",
                    "message": 'column "payload_hash" of relation "consent_events" does not exist',
                })
            return httpx.Response(201)

        await ConsentEventStore(_backend_with(handler)).store(_make_event())

        assert len(bodies) == 2
        assert "payload_hash" not in bodies[1]


# ── build_store ──────────────────────────────────────────────────────


class TestBuildStore:
    def test_missing_config(self):
        backend = BackendSettings(supabase_url="", supabase_service_role_key="", database_url="")

        with pytest.raises(ConfigurationError) as exc_info:
            build_store(backend)
        assert exc_info.value.public_message == "Server configuration error"
        assert exc_info.value.status_code == 500

    def test_missing_key_only(self):
        backend = BackendSettings(supabase_url="https://p.supabase.co", supabase_service_role_key="", database_url="")

        with pytest.raises(ConfigurationError):
            build_store(backend)

    def test_supabase(self):
        backend = BackendSettings(
            supabase_url="https://p.supabase.co", supabase_service_role_key="key", database_url="",
        )
        store = build_store(backend)
        assert isinstance(store._backend, SupabaseConsentBackend)

    def test_sql_takes_precedence(self):
        backend = BackendSettings(
            supabase_url="", supabase_service_role_key="", database_url="postgresql+asyncpg://u:p@db/consent",
        )
        with patch("consentlog.storage.factory.get_session_factory") as mock_factory:
            store = build_store(backend)
        assert isinstance(store._backend, SqlConsentBackend)
        mock_factory.assert_called_once()
