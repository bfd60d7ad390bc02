"""Payload hash for best-effort deduplication.

Client retry logic can fire the same consent event several times within a
few seconds. Bucketing the timestamp makes those submissions hash equally so
the unique index on consent_events.payload_hash absorbs them.

The serialized form is compact JSON with a fixed key order, identical to what
browsers produce with JSON.stringify (lone surrogates escaped as \\uXXXX), so
hashes stay comparable across deployments. This holds while ts_bucket is
below 1e21; beyond that JSON.stringify switches to exponent notation.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

from consentlog.config import settings
from consentlog.schemas.consent import ConsentEvent

_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


def _escape_surrogates(text: str) -> str:
    """Escape unpaired surrogates the way JSON.stringify does."""
    return _LONE_SURROGATE.sub(lambda m: f"\\u{ord(m.group()):04x}", text)


def bucket_timestamp(ts: int, window_ms: int) -> int:
    """Round down to the start of the dedup window."""
    return (ts // window_ms) * window_ms


def hash_fields(event: ConsentEvent, window_ms: int) -> dict[str, Any]:
    """The ordered subset of fields that identifies a submission."""
    return {
        "domain": event.domain,
        "action": event.action.value,
        "ts_bucket": bucket_timestamp(event.ts, window_ms),
        "consent": event.consent.model_dump(),
        "version": event.version,
        "consent_uid": event.consent_uid,
    }


def compute_payload_hash(event: ConsentEvent, window_ms: int | None = None) -> str:
    """SHA-256 hex digest of the canonical serialization."""
    window = window_ms or settings.consent.dedup_window_ms
    canonical = json.dumps(hash_fields(event, window), separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(_escape_surrogates(canonical).encode("utf-8")).hexdigest()
