"""
DLE Backend - Shared Response Schemas
=======================================

What:  Response models used across resources: error envelope, delete
       acknowledgement, webhook acknowledgement and the health report.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Error envelope returned by every global exception handler.

    Example:
        {"error": "Tag already exists", "request_id": "a1b2c3d4"}
    """
    error: str = Field(description="Human-readable error description")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class SuccessResponse(BaseModel):
    """Returned by DELETE endpoints."""
    success: bool = Field(default=True)


class WebhookAck(BaseModel):
    """Returned to Telegram for every processed update, whatever the pipeline outcome."""
    ok: bool = Field(default=True)


class HealthResponse(BaseModel):
    """
    What:  Service and dependency status for monitoring probes.

    status:
        healthy    everything reachable
        degraded   Gemini unavailable or its circuit is open, or the bot is
                   not configured; CRUD still works
        unhealthy  database unreachable (HTTP 503)
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    gemini: str = Field(description="Gemini API status: available, unavailable, circuit_open")
    telegram: str = Field(description="Telegram bot: configured, not_configured")
    uptime_seconds: float = Field(description="Seconds since service started")
