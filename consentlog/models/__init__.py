"""SQLAlchemy ORM models for consentlog.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from consentlog.models.base import Base
from consentlog.models.consent_event import ConsentEventRecord
from consentlog.models.enums import ConsentAction

__all__ = [
    "Base",
    "ConsentEventRecord",
    "ConsentAction",
]
