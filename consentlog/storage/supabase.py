"""Async httpx client for the Supabase (PostgREST) table API."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from consentlog.errors import StorageError
from consentlog.storage.store import TABLE_NAME, classify_backend_error

logger = logging.getLogger(__name__)


class SupabaseConsentBackend:
    """Thin async wrapper around the PostgREST insert endpoint.

    Endpoint: POST {base_url}/rest/v1/consent_events
    Auth: apikey + Bearer service role key
    """

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/{TABLE_NAME}"
        self._key = service_role_key
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }

    async def insert(self, row: dict[str, Any]) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                # ASCII-escaped so unpaired surrogates in client strings still encode
                response = await client.post(self._endpoint, content=json.dumps(row), headers=self._headers())
        except httpx.HTTPError as exc:
            raise StorageError(f"Supabase request failed: {exc!r}") from exc

        if response.is_success:
            return

        code, message = _error_detail(response)
        logger.debug("Supabase insert failed: status=%s code=%s", response.status_code, code)
        raise classify_backend_error(code, message)


def _error_detail(response: httpx.Response) -> tuple[str | None, str]:
    """Extract (code, message) from a PostgREST error body."""
    try:
        payload = response.json()
    except ValueError:
        return None, response.text or f"HTTP {response.status_code}"
    if not isinstance(payload, dict):
        return None, response.text
    code = payload.get("code")
    message = payload.get("message") or response.text
    return (str(code) if code is not None else None), str(message)
