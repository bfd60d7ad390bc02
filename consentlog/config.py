"""Application configuration via pydantic-settings.

All secrets are loaded from environment variables (.env file).
Settings are organized into logical groups and composed into a single Settings object.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_DOMAINS = "turmundleufer.de,unterkonstruktion.de,www.state-of-mind.co,philia-store.com"


class BackendSettings(BaseSettings):
    """Storage backend credentials — Supabase REST or direct PostgreSQL."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_role_key: str = Field(
        default="",
        description="Service role key for server-side inserts",
    )
    database_url: str = Field(
        default="",
        description="Optional async PostgreSQL DSN (postgresql+asyncpg://...), bypasses Supabase REST",
    )
    storage_timeout: float = Field(default=10.0, description="REST backend request timeout in seconds")

    @property
    def use_sql(self) -> bool:
        """True when a direct database DSN is configured."""
        return bool(self.database_url)

    @property
    def missing(self) -> list[str]:
        """Names of required variables that are not set for the selected backend."""
        if self.use_sql:
            return []
        missing = []
        if not self.supabase_url:
            missing.append("SUPABASE_URL")
        if not self.supabase_service_role_key:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        return missing


class ConsentSettings(BaseSettings):
    """Request limits and the domain allowlist."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", env_prefix="consent_")

    allowed_domains: str = Field(
        default=DEFAULT_ALLOWED_DOMAINS,
        description="Comma-separated domains allowed to submit consent events",
    )
    max_body_size: int = Field(default=64 * 1024, description="Best-effort request body ceiling in bytes")
    dedup_window_ms: int = Field(default=10_000, description="Timestamp bucket for payload hashing")

    @property
    def domains(self) -> list[str]:
        """Parse comma-separated domains into a list."""
        return [d.strip() for d in self.allowed_domains.split(",") if d.strip()]


class Settings(BaseSettings):
    """Root settings composing all sub-settings.

    Usage:
        settings = Settings()
        settings.backend.supabase_url
        settings.consent.domains
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Composed settings (loaded from same .env)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    consent: ConsentSettings = Field(default_factory=ConsentSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            msg = f"Invalid log level: {v}. Must be one of {valid}"
            raise ValueError(msg)
        return upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


# Module-level singleton — import this wherever settings are needed.
settings = Settings()
