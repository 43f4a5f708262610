"""
DLE Backend - Voice Events Route Handlers
===========================================

What:  Read-only admin views over the Telegram ingestion pipeline: ingested
       voice events, the fields extracted from them, the raw webhook
       payload log, and the audio proxy.
Who:   The frontend Events page and whoever is debugging the bot.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.event import EventDataResponse, EventResponse, TelegramDebugLogResponse
from app.services.event_service import event_service
from app.services.storage_service import storage_service

router = APIRouter(prefix="/api", tags=["Events"])


@router.get("/events", response_model=List[EventResponse], summary="Ingested voice events, newest first")
async def list_events(db: AsyncSession = Depends(get_db_session)) -> List[EventResponse]:
    return await event_service.list_events(db)


@router.get(
    "/event-data",
    response_model=List[EventDataResponse],
    summary="Extracted key/value rows, optionally for one event",
)
async def list_event_data(
    event_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> List[EventDataResponse]:
    return await event_service.list_event_data(db, event_id=event_id)


@router.get(
    "/telegram-debug",
    response_model=List[TelegramDebugLogResponse],
    summary="The 50 most recent raw webhook payloads",
)
async def list_telegram_debug(db: AsyncSession = Depends(get_db_session)) -> List[TelegramDebugLogResponse]:
    return await event_service.list_debug_logs(db)


@router.get(
    "/audio/{key:path}",
    responses={
        200: {"description": "Audio bytes"},
        404: {"description": "Audio not found", "model": ErrorResponse},
    },
    summary="Serve stored audio (bot voice notes and habit voice notes)",
)
async def serve_audio(key: str) -> Response:
    """Keys may contain a slash (habit-notes/...), hence the path converter."""
    stored = await storage_service.get(key, default_content_type="audio/ogg")
    return Response(
        content=stored.content,
        media_type=stored.content_type,
        headers={"Cache-Control": "private, max-age=86400"},
    )
