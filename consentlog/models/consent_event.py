"""ConsentEventRecord model — one row per accepted consent submission.

Append-only. payload_hash was added in revision 002 and may be absent on
databases still at revision 001; storage handles that case.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Boolean, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from consentlog.models.base import Base, CreatedAtMixin


class ConsentEventRecord(CreatedAtMixin, Base):
    """A stored consent banner interaction."""

    __tablename__ = "consent_events"

    domain: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, comment="ConsentAction enum value")
    consent: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, comment="essential/analytics/functional/marketing flags"
    )

    # Banner metadata supplied by the client
    version: Mapped[str | None] = mapped_column(String(100))
    region: Mapped[str | None] = mapped_column(String(100))
    language: Mapped[str | None] = mapped_column(String(50))
    consent_uid: Mapped[str | None] = mapped_column(String(255), index=True)
    gpc: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[str | None] = mapped_column(String(100))

    # Dedup key, unique across the table
    payload_hash: Mapped[str | None] = mapped_column(String(64), unique=True)

    def __repr__(self) -> str:
        return f"<ConsentEventRecord domain={self.domain} action={self.action}>"
