"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization.
"""

from __future__ import annotations

from enum import Enum


class ConsentAction(str, Enum):
    """Which banner control the visitor used — closed set, anything else is UNKNOWN."""

    ACCEPT_ALL = "accept_all"
    REJECT_ALL = "reject_all"
    SAVE_SELECTION = "save_selection"
    UNKNOWN = "unknown"

    @classmethod
    def coerce(cls, value: object) -> ConsentAction:
        """Map an untrusted value onto the enum, defaulting to UNKNOWN."""
        if isinstance(value, str) and value in _ACTION_VALUES:
            return cls(value)
        return cls.UNKNOWN


_ACTION_VALUES: frozenset[str] = frozenset(a.value for a in ConsentAction)
