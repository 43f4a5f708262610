"""
DLE Backend - Event Service
=============================

What:  Read-only admin views over what the Telegram pipeline recorded:
       events, extracted event_data rows and raw webhook payloads.
Who:   Routes in app.routes.events.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.event import Event, EventData, TelegramDebugLog
from app.schemas.event import EventDataResponse, EventResponse, TelegramDebugLogResponse

DEBUG_LOG_LIMIT = 50


class EventService:

    async def list_events(self, db: AsyncSession) -> List[EventResponse]:
        result = await db.execute(select(Event).order_by(Event.created_at.desc(), Event.id.desc()))
        return [EventResponse.model_validate(e) for e in result.scalars().all()]

    async def list_event_data(
        self, db: AsyncSession, event_id: Optional[int] = None
    ) -> List[EventDataResponse]:
        """Extracted rows, newest first, each with its event's transcription as a preview."""
        query = select(EventData, Event.transcription).join(Event, Event.id == EventData.event_id)
        if event_id is not None:
            query = query.where(EventData.event_id == event_id)
        query = query.order_by(EventData.created_at.desc(), EventData.id.desc())

        result = await db.execute(query)
        items = []
        for row, preview in result.all():
            item = EventDataResponse.model_validate(row)
            item.event_preview = preview
            items.append(item)
        return items

    async def list_debug_logs(self, db: AsyncSession) -> List[TelegramDebugLogResponse]:
        result = await db.execute(
            select(TelegramDebugLog).order_by(TelegramDebugLog.id.desc()).limit(DEBUG_LOG_LIMIT)
        )
        return [TelegramDebugLogResponse.model_validate(r) for r in result.scalars().all()]


# ── Singleton Instance ────────────────────────────────────────────────────
event_service = EventService()
