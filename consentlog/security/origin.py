"""Caller-origin resolution and CORS headers.

The resolved origin decides who may call the endpoint and is echoed back in
Access-Control-Allow-Origin. Checked in order:

1. Origin header: returned verbatim if its host is allowed. A present but
   malformed or foreign Origin ends resolution (no fallback to Referer).
2. Referer header: the origin of the referring page.
3. Host header: for keepalive/beacon sends that carry neither header.
"""

from __future__ import annotations

import logging
from urllib.parse import SplitResult, urlsplit

from consentlog.schemas.consent import RequestContext
from consentlog.security.allowlist import DomainAllowlist, default_allowlist

logger = logging.getLogger(__name__)

_DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "86400",
}


def parse_url(value: str) -> SplitResult:
    """Parse an absolute URL, raising ValueError if it has no scheme or host."""
    parts = urlsplit(value.strip())
    if not parts.scheme or not parts.hostname:
        msg = f"Not an absolute URL: {value!r}"
        raise ValueError(msg)
    # Accessing .port validates it (raises ValueError when out of range)
    parts.port  # noqa: B018
    return parts


def url_origin(parts: SplitResult) -> str:
    """Serialize scheme + host (+ non-default port) of a parsed URL."""
    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def host_without_port(host: str) -> str:
    """Strip the port from a Host header value."""
    return host.split(":")[0].strip()


def resolve_allowed_origin(
    context: RequestContext,
    allowlist: DomainAllowlist = default_allowlist,
) -> str | None:
    """Return the authorized caller origin, or None if the caller is not allowed."""
    if context.origin:
        try:
            parts = parse_url(context.origin)
        except ValueError:
            logger.info("Rejected malformed Origin header")
            return None
        if allowlist.is_host_allowed(parts.hostname):
            return context.origin
        logger.info("Rejected Origin outside allowlist: %s", parts.hostname)
        return None

    if context.referer:
        try:
            parts = parse_url(context.referer)
        except ValueError:
            parts = None
        if parts is not None and allowlist.is_host_allowed(parts.hostname):
            return url_origin(parts)

    if context.host:
        hostname = host_without_port(context.host)
        if allowlist.is_host_allowed(hostname):
            proto = (context.forwarded_proto or "https").split(",")[0].strip() or "https"
            return f"{proto}://{hostname}"

    return None


def cors_headers(origin: str | None) -> dict[str, str]:
    """CORS response headers — empty when the origin was not resolved."""
    if not origin:
        return {}
    return {"Access-Control-Allow-Origin": origin, **CORS_HEADERS}
