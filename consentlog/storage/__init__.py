"""Persistence for consent events — Supabase REST or direct PostgreSQL."""

from consentlog.storage.factory import build_store
from consentlog.storage.store import ConsentEventStore

__all__ = ["build_store", "ConsentEventStore"]
