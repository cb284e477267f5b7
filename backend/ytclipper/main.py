"""
ytclipper Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes configuration, middleware, routes, error rendering and
       lifecycle management in one place.
Who:   uvicorn (uvicorn ytclipper.main:app) and the test suite (create_app()).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐       │
    │  │  Rate Limit  │→│ Req ID   │→│  Logging        │       │
    │  └──────────────┘ └──────────┘ └─────────────────┘       │
    │                                                          │
    │  Routes:                                                 │
    │  ┌─────────────────┐ ┌───────────────────┐ ┌─────────┐   │
    │  │ /api/v1/auth/*  │ │ /api/v1/timestamps│ │ /health │   │
    │  └─────────────────┘ └───────────────────┘ └─────────┘   │
    │                                                          │
    │  Exception Handlers:                                     │
    │  ┌────────────────────────────────────────────────────┐  │
    │  │ YtClipperError → its status + code                 │  │
    │  │ DependencyError → 500, generic message             │  │
    │  │ RequestValidationError → 400 INVALID_REQUEST       │  │
    │  └────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────┘

Shared services:
    TokenIssuer and GoogleOAuthBridge are built from settings in create_app()
    and stored on app.state; route dependencies read them from there.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from ytclipper import __version__
from ytclipper.config import settings
from ytclipper.database import dispose_engine
from ytclipper.exceptions import (
    DependencyError,
    RateLimitExceededError,
    YtClipperError,
)
from ytclipper.middleware.logging import RequestLoggingMiddleware
from ytclipper.middleware.rate_limit import RateLimitMiddleware
from ytclipper.middleware.request_id import RequestIDMiddleware, request_id_var
from ytclipper.routes import auth, health, timestamps
from ytclipper.services.google_oauth import GoogleOAuthBridge
from ytclipper.services.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Tokens, passwords and one-time links are never passed to a logger at
    INFO or above; account ids are.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:  logging, configuration check, log the listen address.
    Shutdown: dispose the database engine (close pooled connections).
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("ytclipper Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: health checks and password flows still work
        logger.error("Configuration error: %s", str(e))

    if not app.state.oauth_bridge.enabled:
        logger.warning("Google sign-in disabled (GOOGLE_CLIENT_ID/SECRET unset)")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("ytclipper Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(code: str, message: str, details=None) -> dict:
    return {
        "error": code,
        "message": message,
        "details": details,
        "request_id": request_id_var.get(""),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the error envelope {error, message, details, request_id}.

    Handler hierarchy (most specific registered class wins):
        RateLimitExceededError  → 429 + Retry-After
        DependencyError         → its status, generic message, context logged only
        YtClipperError          → its status, code, message, context as details
        RequestValidationError  → 400 INVALID_REQUEST
        Exception (fallback)    → 500 INTERNAL_ERROR

    Security: stack traces, SQL and provider responses are logged, never returned.
    """

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DependencyError)
    async def handle_dependency_error(request: Request, exc: DependencyError):
        rid = request_id_var.get("")
        logger.error(
            "[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message),
        )

    @app.exception_handler(YtClipperError)
    async def handle_app_error(request: Request, exc: YtClipperError):
        rid = request_id_var.get("")
        logger.info("[%s] %s %s: %s", rid, exc.status_code, exc.code, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, exc.context or None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """Malformed body, query or path: report the offending fields."""
        fields = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_error_body("INVALID_REQUEST", "Invalid request", {"fields": fields}),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "INTERNAL_ERROR",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Each call returns an independent app (own rate-limit window, own
    app.state), which is what the tests rely on.
    """
    app = FastAPI(
        title="ytclipper API",
        description="Accounts, sessions and timestamped video notes for ytclipper.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.token_issuer = TokenIssuer.from_settings(settings)
    app.state.oauth_bridge = GoogleOAuthBridge.from_settings(settings)

    # ── Register Middleware ───────────────────────────────────────────────
    # Execution order is the reverse of addition:
    # RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,     # session cookies
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(timestamps.router)
    app.include_router(health.router)

    return app


app = create_app()
