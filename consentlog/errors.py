"""Error taxonomy for the consent ingestion pipeline.

Every error carries the HTTP status it maps to and a public message that is
safe to return to the browser. Internal detail (database error text, which
environment variable is missing) stays in the exception args and the logs.
"""

from __future__ import annotations


class ConsentApiError(Exception):
    """Base class — maps to a JSON `{"error": public_message}` response."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        if message is not None and self.status_code < 500:
            # Client errors expose their own message; server errors never do.
            self.public_message = message


class MalformedRequest(ConsentApiError):
    """Body too large or not parseable as JSON."""

    status_code = 400
    public_message = "Invalid JSON"


class InvalidPayload(ConsentApiError):
    """Body is JSON but not a usable consent object."""

    status_code = 400
    public_message = "Invalid payload"


class OriginNotAllowed(ConsentApiError):
    """Caller origin could not be resolved against the allowlist."""

    status_code = 403
    public_message = "Origin not allowed"


class DomainNotAllowed(ConsentApiError):
    """Payload claims a domain outside the allowlist."""

    status_code = 403
    public_message = "domain not in allowlist"


class DomainUnresolvable(ConsentApiError):
    """No allowed domain could be derived from payload or headers."""

    status_code = 403
    public_message = "could not resolve allowed domain"


class ConfigurationError(ConsentApiError):
    """Storage backend credentials are absent."""

    status_code = 500
    public_message = "Server configuration error"


class StorageError(ConsentApiError):
    """Insert into the backing store failed."""

    status_code = 500
    public_message = "Database error"


class MissingColumnError(StorageError):
    """Target table lacks a column named in the insert (SQLSTATE 42703)."""

    def __init__(self, column: str | None, message: str | None = None) -> None:
        super().__init__(message or f"column {column!r} does not exist")
        self.column = column


class DuplicateEventError(StorageError):
    """Unique constraint on payload_hash rejected the row (SQLSTATE 23505)."""
