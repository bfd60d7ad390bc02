"""Selects the storage backend from settings."""

from __future__ import annotations

import logging

from consentlog.config import BackendSettings, settings
from consentlog.db.engine import get_session_factory
from consentlog.errors import ConfigurationError
from consentlog.storage.sql import SqlConsentBackend
from consentlog.storage.store import ConsentEventStore
from consentlog.storage.supabase import SupabaseConsentBackend

logger = logging.getLogger(__name__)


def build_store(backend: BackendSettings | None = None) -> ConsentEventStore:
    """Return a store for the configured backend.

    DATABASE_URL takes precedence; otherwise both Supabase variables must be
    set. Raises ConfigurationError when neither is usable. The missing
    variable names are logged, never returned to the caller.
    """
    backend = backend or settings.backend
    if backend.use_sql:
        return ConsentEventStore(SqlConsentBackend(get_session_factory()))

    missing = backend.missing
    if missing:
        logger.error("Storage backend not configured, missing %s", ", ".join(missing))
        raise ConfigurationError("missing " + ", ".join(missing))

    return ConsentEventStore(
        SupabaseConsentBackend(
            backend.supabase_url,
            backend.supabase_service_role_key,
            timeout=backend.storage_timeout,
        )
    )
