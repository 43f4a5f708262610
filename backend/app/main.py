"""
DLE Backend - FastAPI Application Factory
===========================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() registers middleware, exception
       handlers and routers, and wires the lifespan.
Who:   uvicorn (uvicorn app.main:app) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │                                                              │
    │  Middleware Chain:                                           │
    │  ┌──────────┐ ┌────────────┐ ┌─────────┐ ┌──────┐ ┌──────┐   │
    │  │ Req ID   │→│ Rate Limit │→│ Logging │→│ GZip │→│ CORS │   │
    │  └──────────┘ └────────────┘ └─────────┘ └──────┘ └──────┘   │
    │                                                              │
    │  Routes:                                                     │
    │  people · tags · notes/photos · search/categories · habits   │
    │  events/audio · telegram-webhook · /health                   │
    │                                                              │
    │  Exception Handlers:                                         │
    │  Validation→400 │ Auth→401 │ NotFound→404 │ Conflict→409     │
    │  RateLimit→429  │ External→503 │ everything else→500         │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → configuration check (logged, not fatal) → storage dir
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.config import settings
from app.database import dispose_engine
from app.exceptions import (
    CircuitBreakerOpenError,
    DatabaseError,
    DiaryError,
    ExternalServiceError,
    LLMServiceError,
    RateLimitExceededError,
)
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.rate_limit import RateLimitMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import events, habits, health, notes, people, search, tags, telegram

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: 2024-06-10T12:00:00 [INFO] app.services.note_service: Note created: 12
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation at INFO/DEBUG.
    # httpx would also log Telegram URLs, which contain the bot token.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("DLE Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: CRUD and /health keep working without the AI and bot keys
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("DLE Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "request_id": request_id_var.get("")},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to `{"error": ..., "request_id": ...}` responses.

    Handler hierarchy:
        RequestValidationError  → 400 (FastAPI body/query/path parsing)
        RateLimitExceededError  → 429 + Retry-After
        ExternalServiceError    → 503 (+ Retry-After for LLM / circuit breaker)
        DatabaseError           → 500 with a generic message
        DiaryError (base)       → exc.status_code with exc.message
        Exception (fallback)    → 500 with a generic message

    Context dicts and stack traces are logged, never returned.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(
            str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")
        )
        message = first.get("msg", "Invalid request")
        if field:
            message = f"Invalid {field}: {message}"
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return _error(400, message)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error(429, exc.message, headers={"Retry-After": str(exc.retry_after)})

    @app.exception_handler(ExternalServiceError)
    async def handle_external_service(request: Request, exc: ExternalServiceError):
        rid = request_id_var.get("")
        logger.error("[%s] External service error: %s | Context: %s", rid, exc.message, exc.context)
        headers = {}
        if isinstance(exc, CircuitBreakerOpenError):
            headers["Retry-After"] = str(exc.recovery_time)
        elif isinstance(exc, LLMServiceError) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return _error(503, exc.message, headers=headers)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return _error(500, "An internal error occurred. Please try again later.")

    @app.exception_handler(DiaryError)
    async def handle_diary_error(request: Request, exc: DiaryError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return _error(500, "An unexpected error occurred. Please try again later.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="DLE API",
        description=(
            "Daily Life Events diary backend: people, tags, notes with photos, "
            "habit tracking, and a Telegram bot that transcribes voice notes and "
            "extracts structured events with Google Gemini."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in reverse order of addition: RequestID runs first, so a 429
    # from RateLimit already carries the request id.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Length", "Retry-After"],
        max_age=600,
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(people.router)
    app.include_router(tags.router)
    app.include_router(notes.router)
    app.include_router(search.router)
    app.include_router(habits.router)
    app.include_router(events.router)
    app.include_router(telegram.router)
    app.include_router(health.router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict:
        return {"message": "DLE Backend is Running"}

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
