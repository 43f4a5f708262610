"""
DLE Backend - Request Logging Middleware
==========================================

What:  One access-log line per request: method, path, status, duration,
       request ID and client IP.
How:   Measures wall time around call_next and picks the level from the
       status code (5xx ERROR, 4xx WARNING, otherwise INFO).
Who:   Every request except /health, which monitoring polls constantly.

Request bodies are never logged: notes and voice transcriptions are
personal diary content.

Example:
    2024-06-10T12:00:00 [INFO] dle.access: POST /api/telegram-webhook 200 4312.5ms [a1b2c3d4] from 91.108.6.1
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var

logger = logging.getLogger("dle.access")

SKIPPED_PATHS = {"/health"}


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SKIPPED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        client = request.client.host if request.client else "unknown"
        logger.log(
            level_for_status(response.status_code),
            "%s %s %d %.1fms [%s] from %s",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
            request_id_var.get(""),
            client,
        )
        return response
