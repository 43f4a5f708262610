"""
DLE Backend - Telegram Webhook Route
======================================

What:  POST /api/telegram-webhook, the entry point of the voice ingestion
       pipeline.
How:   Checks configuration and the optional secret header, parses the body
       as a JSON object, and hands the Update to IngestionService. Pipeline
       failures are reported to the chat by the service; the HTTP answer to
       Telegram is {"ok": true} for every accepted update.
Who:   Telegram's servers, after setWebhook points the bot here.

Status codes:
    200  update accepted (whatever the pipeline outcome)
    400  body is not a JSON object
    401  X-Telegram-Bot-Api-Secret-Token does not match the configured secret
    500  TELEGRAM_BOT_TOKEN is not set

Telegram retries a non-2xx delivery, so only requests that can never
succeed get one.
"""

import hmac
import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db_session
from app.exceptions import AuthenticationError, ConfigurationError, ValidationError
from app.schemas.common import ErrorResponse, WebhookAck
from app.services.ingestion_service import ingestion_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Telegram"])

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


@router.post(
    "/telegram-webhook",
    response_model=WebhookAck,
    responses={
        400: {"description": "Invalid JSON", "model": ErrorResponse},
        401: {"description": "Secret token mismatch", "model": ErrorResponse},
        500: {"description": "Bot not configured", "model": ErrorResponse},
    },
    summary="Receive a Telegram Update",
)
async def telegram_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> WebhookAck:
    if not settings.telegram_bot_token:
        raise ConfigurationError(message="Bot Not Configured")

    if settings.telegram_webhook_secret:
        supplied = request.headers.get(SECRET_HEADER, "")
        if not hmac.compare_digest(supplied, settings.telegram_webhook_secret):
            logger.warning("Webhook call with a bad secret token rejected")
            raise AuthenticationError(message="Invalid webhook secret")

    body = await request.body()
    try:
        update = json.loads(body)
    except ValueError:
        raise ValidationError(message="Invalid JSON")
    if not isinstance(update, dict):
        raise ValidationError(message="Invalid JSON")

    await ingestion_service.handle_update(db, update)
    return WebhookAck()
