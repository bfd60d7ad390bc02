"""Pydantic schemas for the consent ingestion pipeline.

Pure data classes — no DB dependencies, no HTTP dependencies.
A ConsentEvent only ever exists fully validated; see ingest.validator.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from consentlog.models.enums import ConsentAction


class RequestContext(BaseModel):
    """The request headers the pipeline reads — nothing else from the request leaks in."""

    model_config = ConfigDict(frozen=True)

    origin: str | None = None
    referer: str | None = None
    host: str | None = None
    forwarded_proto: str | None = None
    content_length: str | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> RequestContext:
        """Build from a case-insensitive header mapping (Starlette Headers)."""
        return cls(
            origin=headers.get("origin"),
            referer=headers.get("referer"),
            host=headers.get("host"),
            forwarded_proto=headers.get("x-forwarded-proto"),
            content_length=headers.get("content-length"),
        )

    @property
    def declared_length(self) -> int:
        """Content-Length as int; 0 when absent or unparseable."""
        try:
            return int((self.content_length or "0").strip())
        except ValueError:
            return 0


class ConsentChoices(BaseModel):
    """The four consent categories shown in the banner."""

    model_config = ConfigDict(frozen=True)

    essential: bool = False
    analytics: bool = False
    functional: bool = False
    marketing: bool = False


class ConsentEvent(BaseModel):
    """One normalized consent submission."""

    model_config = ConfigDict(frozen=True)

    ts: int = Field(description="Client timestamp, epoch milliseconds")
    action: ConsentAction
    consent: ConsentChoices
    version: str | None = None
    region: str | None = None
    language: str | None = None
    consent_uid: str | None = None
    gpc: bool = False
    source: str | None = None
    domain: str

    def to_row(self) -> dict[str, Any]:
        """Column values for consent_events (ts is not persisted, only hashed)."""
        return {
            "domain": self.domain,
            "action": self.action.value,
            "consent": self.consent.model_dump(),
            "version": self.version,
            "region": self.region,
            "language": self.language,
            "consent_uid": self.consent_uid,
            "gpc": self.gpc,
            "source": self.source,
        }
