"""FastAPI application entry point — wires everything together.

Usage:
    python -m consentlog.main
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from consentlog.api.handler import consent_router
from consentlog.config import settings
from consentlog.db.engine import close_db, init_db
from consentlog.security.allowlist import default_allowlist

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info(
        "Starting consentlog (env=%s, allowlist=%s)",
        settings.environment,
        ", ".join(default_allowlist.entries),
    )

    if settings.backend.use_sql:
        await init_db()
        logger.info("Storage backend: PostgreSQL")
    elif settings.backend.missing:
        # Requests will answer 500 until configured
        logger.warning("Storage backend not configured, consent events will be rejected")
    else:
        logger.info("Storage backend: Supabase REST")

    try:
        yield
    finally:
        await close_db()
        logger.info("consentlog shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="consentlog",
    description="Consent event logging for cookie banners",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
    }


app.include_router(consent_router)


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "consentlog.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
