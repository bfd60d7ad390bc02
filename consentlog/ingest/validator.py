"""Payload validation — turns an untrusted JSON body into a ConsentEvent.

`normalize` either returns a fully populated ConsentEvent or raises one of
InvalidPayload, DomainNotAllowed, DomainUnresolvable. Nothing unvalidated
leaves this module.
"""

from __future__ import annotations

import math
import time
from typing import Any

from consentlog.errors import DomainNotAllowed, DomainUnresolvable, InvalidPayload
from consentlog.models.enums import ConsentAction
from consentlog.schemas.consent import ConsentChoices, ConsentEvent, RequestContext
from consentlog.security.allowlist import DomainAllowlist, default_allowlist
from consentlog.security.origin import host_without_port, parse_url

CONSENT_FLAGS: tuple[str, ...] = ("essential", "analytics", "functional", "marketing")
OPTIONAL_STRINGS: tuple[str, ...] = ("version", "region", "language", "consent_uid", "source")


def coerce_bool(value: Any, fallback: bool = False) -> bool:
    """Accept true/false, "true"/"false" and 1/0; anything else is the fallback."""
    if isinstance(value, bool):
        return value
    if value == "true" or (_is_number(value) and value == 1):
        return True
    if value == "false" or (_is_number(value) and value == 0):
        return False
    return fallback


def coerce_timestamp(value: Any, now_ms: int | None = None) -> int:
    """Client timestamp if it is a finite number, otherwise the server clock."""
    if _is_number(value) and _is_finite(value):
        return math.floor(value)
    return now_ms if now_ms is not None else int(time.time() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite(value: int | float) -> bool:
    # ints beyond float range parse as Infinity in browsers
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _allowed_hostname(url: str | None, allowlist: DomainAllowlist) -> str | None:
    """Hostname of a header URL if it parses and is allowed."""
    if not url:
        return None
    try:
        hostname = parse_url(url).hostname
    except ValueError:
        return None
    return hostname if allowlist.is_host_allowed(hostname) else None


def resolve_domain(
    raw: dict[str, Any],
    context: RequestContext,
    allowlist: DomainAllowlist = default_allowlist,
) -> str:
    """Determine which site the consent event is about.

    An explicit ``domain`` in the payload wins but must be allowlisted; a
    foreign domain rejects the request rather than being replaced. Without
    one, the domain is taken from Origin, then Referer, then Host.
    """
    claimed = raw.get("domain")
    if claimed:
        if not allowlist.is_host_allowed(claimed):
            raise DomainNotAllowed()
        return claimed

    for header in (context.origin, context.referer):
        hostname = _allowed_hostname(header, allowlist)
        if hostname:
            return hostname

    # API served from the site's own domain
    if context.host:
        hostname = host_without_port(context.host)
        if hostname and allowlist.is_host_allowed(hostname):
            return hostname

    raise DomainUnresolvable()


def normalize(
    raw: Any,
    context: RequestContext,
    allowlist: DomainAllowlist = default_allowlist,
    now_ms: int | None = None,
) -> ConsentEvent:
    """Validate and default a raw consent body."""
    if not isinstance(raw, dict):
        raise InvalidPayload("Invalid payload: expected JSON object")

    consent = raw.get("consent")
    if not isinstance(consent, dict):
        raise InvalidPayload("Missing or invalid consent object")

    optional = {name: _optional_str(raw.get(name)) for name in OPTIONAL_STRINGS}

    return ConsentEvent(
        ts=coerce_timestamp(raw.get("ts"), now_ms),
        action=ConsentAction.coerce(raw.get("action")),
        consent=ConsentChoices(**{flag: coerce_bool(consent.get(flag)) for flag in CONSENT_FLAGS}),
        gpc=coerce_bool(raw.get("gpc")),
        domain=resolve_domain(raw, context, allowlist),
        **optional,
    )
