"""
Digital Ledger Backend: FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn ledger.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                        FastAPI App                       │
    │                                                          │
    │  Middleware Chain (outermost first):                     │
    │  Request ID → Access Log → Security Headers              │
    │    → Error Boundary → Body Size → Origin Policy          │
    │    → HTTPS Redirect (production) → Rate Limit            │
    │                                                          │
    │  Routes (SanitizedRoute):                                │
    │  GET /health, /api/health   POST /api/auth/register      │
    │  POST /api/auth/login       POST /api/auth/change-password│
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate production configuration
    3. Log the effective origin allowlist

    Shutdown:
    1. Dispose database engine (close all connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional

from fastapi import APIRouter, FastAPI

from ledger import __version__
from ledger.config import Settings, settings as default_settings
from ledger.database import dispose_engine
from ledger.middleware.logging import RequestLoggingMiddleware
from ledger.middleware.request_id import RequestIDMiddleware
from ledger.pipeline import install_security_pipeline
from ledger.routes import auth, health
from ledger.security.rate_limit import InMemoryRateLimitStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: 2026-01-15T10:30:00 [INFO] ledger.access: POST /api/auth/login 401 ...

    Third-party libraries that log every operation are capped at WARNING.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Container runtimes capture stdout
        ],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    config: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(config.log_level)
    logger.info("=" * 60)
    logger.info("Digital Ledger Backend %s starting (NODE_ENV=%s)", __version__, config.node_env)

    try:
        config.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")
        # Keep serving: health checks still report, and origin checks still
        # fall back to the local development entries.

    logger.info("Allowed origins: %s", ", ".join(config.origin_allowlist))
    logger.info("Server ready at http://%s:%d", config.backend_host, config.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Digital Ledger Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    *,
    rate_limit_store: Optional[InMemoryRateLimitStore] = None,
    routers: Optional[Iterable[APIRouter]] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: configuration to use; defaults to the environment's
        rate_limit_store: counter store, injectable so tests can control the clock
        routers: routers to mount; defaults to the health and auth routers
    """
    config = settings or default_settings

    app = FastAPI(
        title="Digital Ledger API",
        description="Community platform backend: accounts and request security.",
        version=__version__,
        docs_url=None if config.is_production else "/docs",
        redoc_url=None,
        openapi_url=None if config.is_production else "/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = config

    # ── Security Pipeline ─────────────────────────────────────────────────
    install_security_pipeline(app, config, rate_limit_store)

    # ── Observability (outermost) ─────────────────────────────────────────
    # Middleware executes in REVERSE order of addition: Request ID runs first,
    # so every access-log line and error response carries the ID.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Routes ───────────────────────────────────────────────────
    for router in routers if routers is not None else (health.router, auth.router):
        app.include_router(router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `ledger.main:app` to be importable
app = create_app()
