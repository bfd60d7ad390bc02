"""Consent endpoint — receives consent events from cookie banners.

Handles:
- OPTIONS /  → CORS preflight (204)
- POST    /  → validate, hash, store a consent event (204)
- anything else → 405

Order of checks: origin → method → size → JSON → payload → config → insert.
Every error becomes ``{"error": "..."}``; internal detail is only logged.
Consent choices themselves are never logged.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from consentlog.config import settings
from consentlog.errors import ConsentApiError, MalformedRequest, OriginNotAllowed, StorageError
from consentlog.ingest.validator import normalize
from consentlog.schemas.consent import RequestContext
from consentlog.security.allowlist import DomainAllowlist, default_allowlist
from consentlog.security.origin import cors_headers, resolve_allowed_origin
from consentlog.storage import build_store

logger = logging.getLogger(__name__)

consent_router = APIRouter(tags=["consent"])

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


# ── Helpers ──────────────────────────────────────────────────────────


def _error_response(status_code: int, message: str, origin: str | None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=cors_headers(origin))


def _no_content(origin: str | None) -> Response:
    return Response(status_code=204, headers=cors_headers(origin))


def _reject_constant(name: str) -> float:
    """NaN and Infinity are not JSON."""
    raise ValueError(f"Invalid JSON constant: {name}")


async def _read_json(
    context: RequestContext,
    read_body: Callable[[], Awaitable[bytes]],
    max_size: int,
) -> object:
    """Size-check and parse the request body. Raises MalformedRequest."""
    if context.declared_length > max_size:
        raise MalformedRequest("Payload too large")

    body = await read_body()
    if len(body) > max_size:
        raise MalformedRequest("Payload too large")

    try:
        return json.loads(body, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedRequest("Invalid JSON") from exc


async def _handle_post(
    context: RequestContext,
    read_body: Callable[[], Awaitable[bytes]],
    origin: str,
    allowlist: DomainAllowlist,
) -> Response:
    raw = await _read_json(context, read_body, settings.consent.max_body_size)
    event = normalize(raw, context, allowlist)

    store = build_store()
    await store.store(event)

    logger.info("Consent event stored: domain=%s action=%s", event.domain, event.action.value)
    return _no_content(origin)


# ── Orchestration ────────────────────────────────────────────────────


async def handle_consent_request(
    method: str,
    context: RequestContext,
    read_body: Callable[[], Awaitable[bytes]],
    allowlist: DomainAllowlist = default_allowlist,
) -> Response:
    """Run one request through the pipeline and build the HTTP response."""
    origin: str | None = None
    try:
        origin = resolve_allowed_origin(context, allowlist)
        method = method.upper()

        if method == "OPTIONS":
            return _no_content(origin)

        if method != "POST":
            return _error_response(405, "Method not allowed", origin)

        if origin is None:
            # No Allow-Origin for a rejected caller
            raise OriginNotAllowed()

        return await _handle_post(context, read_body, origin, allowlist)
    except StorageError as exc:
        logger.error("Consent DB error: %s", exc)
        return _error_response(exc.status_code, exc.public_message, origin)
    except ConsentApiError as exc:
        logger.info("Consent request rejected (%s): %s", exc.status_code, exc)
        return _error_response(exc.status_code, exc.public_message, origin)
    except Exception:
        logger.exception("Unhandled error in consent handler")
        return _error_response(500, "Internal server error", origin)


# ── Endpoint ─────────────────────────────────────────────────────────


@consent_router.api_route("/", methods=ALL_METHODS)
async def consent_endpoint(request: Request) -> Response:
    """Accept a consent event from a browser."""
    context = RequestContext.from_headers(request.headers)
    return await handle_consent_request(request.method, context, request.body)
