"""
DLE Backend - Health Check Route
==================================

What:  Health check endpoint for monitoring and container probes.
How:   Checks the database, Gemini (or its circuit breaker) and whether the
       Telegram bot is configured, and returns an aggregate status.
Who:   Docker health checks and uptime monitors.

Status levels:
    - healthy:   everything reachable (HTTP 200)
    - degraded:  Gemini unavailable or the bot not configured; CRUD still
                 works (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import __version__
from app.config import settings
from app.database import engine
from app.schemas.common import HealthResponse
from app.services.gemini_service import gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    """
    Probe each dependency with the cheapest possible call.

    Check details:
        Database: SELECT 1
        Gemini:   circuit breaker state, then list_models()
        Telegram: token presence only; no Bot API call is made
    """
    db_status = "connected"
    gemini_status = "available"
    telegram_status = "configured" if settings.telegram_bot_token else "not_configured"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Gemini API ──────────────────────────────────────────────────
    if gemini_service.circuit_breaker.state == "open":
        gemini_status = "circuit_open"
    elif not await gemini_service.health_check():
        gemini_status = "unavailable"

    if overall != "unhealthy" and (gemini_status != "available" or telegram_status != "configured"):
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        gemini=gemini_status,
        telegram=telegram_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
