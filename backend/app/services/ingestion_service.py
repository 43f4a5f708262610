"""
DLE Backend - Telegram Voice Ingestion Pipeline
=================================================

What:  Turns a Telegram voice message into a transcribed, AI-annotated Event.
How:   Sequential steps on the webhook request's session, with commits at
       fixed checkpoints so earlier work survives later failures.
Who:   POST /api/telegram-webhook (app.routes.telegram).

Pipeline (one Telegram Update):
    ┌─────────────┐   ┌──────────┐   ┌──────────┐   ┌───────────┐   ┌────────────┐
    │ debug log   │──▶│ getFile  │──▶│ download │──▶│ store     │──▶│ transcribe │
    │ (commit)    │   │          │   │          │   │ {id}.ogg  │   │            │
    └─────────────┘   └──────────┘   └──────────┘   └───────────┘   └─────┬──────┘
                                                                          ▼
    ┌─────────────┐   ┌──────────────────────────┐   ┌──────────────────────────┐
    │ reply with  │◀──│ event_data ×4 +          │◀──│ Event row (commit)       │
    │ transcript  │   │ processed=true (commit)  │   │ extract if len > 5       │
    └─────────────┘   └──────────────────────────┘   └──────────────────────────┘

Failure Semantics:
    - Debug log write fails        → logged, pipeline continues
    - Transcription fails          → "(Transcription failed)", pipeline continues
    - Extraction call/parse fails  → logged, Event stays processed=false
    - Anything else after the ack  → session rolled back, error reply sent
    - A reply that cannot be sent  → logged only
    Telegram always gets {"ok": true}; redeliveries are not deduplicated.
"""

import html
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ExternalServiceError, TelegramAPIError
from app.models.event import Event, EventData, TelegramDebugLog
from app.services.extraction import EXTRACTION_SYSTEM_PROMPT, parse_extraction, should_extract
from app.services.gemini_service import gemini_service
from app.services.llm_base import LLMService
from app.services.storage_service import StorageService, storage_service, voice_key
from app.services.telegram_service import TelegramService, telegram_service

logger = logging.getLogger(__name__)

GREETING_REPLY = "🎙️ Hi! Send me a Voice Message and I'll transcribe it + extract key events."
SEND_VOICE_REPLY = "Please send a Voice message."
PROCESSING_REPLY = "🎧 Processing your audio..."
ERROR_REPLY = "❌ Error processing audio. Please try again later."
TRANSCRIPTION_FAILED = "(Transcription failed)"

# Telegram caps messages at 4096 characters
MAX_REPLY_TRANSCRIPT_CHARS = 3000


def format_transcription_reply(transcription: str) -> str:
    """HTML reply body: escaped first, then capped without splitting an entity."""
    text = html.escape(transcription, quote=False)
    if len(text) > MAX_REPLY_TRANSCRIPT_CHARS:
        text = text[:MAX_REPLY_TRANSCRIPT_CHARS]
        amp = text.rfind("&")
        if amp != -1 and ";" not in text[amp:]:
            text = text[:amp]
        text += "..."
    return f"📝 <b>Transcription:</b>\n\n{text}"


def sender_of(message: Optional[Dict[str, Any]]) -> str:
    sender = (message or {}).get("from") or {}
    if sender.get("username"):
        return sender["username"]
    if sender.get("id") is not None:
        return str(sender["id"])
    return "unknown"


class IngestionService:
    """
    Stateless pipeline; collaborators are injectable for tests.

    Args:
        telegram: Bot API client (defaults to the configured singleton)
        llm:      Transcription + completion provider (GeminiService)
        storage:  Object store for the downloaded audio
    """

    def __init__(
        self,
        telegram: Optional[TelegramService] = None,
        llm: Optional[LLMService] = None,
        storage: Optional[StorageService] = None,
    ):
        self.telegram = telegram or telegram_service
        self.llm = llm or gemini_service
        self.storage = storage or storage_service

    async def handle_update(self, db: AsyncSession, update: Dict[str, Any]) -> None:
        """Process one Telegram Update. Never raises for pipeline failures."""
        message = update.get("message")
        if not isinstance(message, dict):
            message = None

        await self._record_payload(db, update, message)
        if message is None:
            logger.debug("Update %s has no message, ignoring", update.get("update_id"))
            return

        chat_id = (message.get("chat") or {}).get("id")
        text = message.get("text") or ""

        if text.startswith("/start"):
            await self._reply(chat_id, GREETING_REPLY)
            return

        voice = message.get("voice") or message.get("audio")
        if not voice:
            await self._reply(chat_id, SEND_VOICE_REPLY)
            return

        await self._reply(chat_id, PROCESSING_REPLY)

        try:
            transcription = await self._process_voice(db, message, voice)
        except Exception as e:
            logger.error(
                "Voice ingestion failed for chat %s: %s",
                chat_id,
                getattr(e, "message", str(e)),
                exc_info=True,
            )
            await db.rollback()
            await self._reply(chat_id, ERROR_REPLY)
            return

        await self._reply(chat_id, format_transcription_reply(transcription), parse_mode="HTML")

    # ── Steps ─────────────────────────────────────────────────────────────

    async def _record_payload(
        self,
        db: AsyncSession,
        update: Dict[str, Any],
        message: Optional[Dict[str, Any]],
    ) -> None:
        """Best-effort copy of the raw update into telegram_debug_logs."""
        try:
            db.add(TelegramDebugLog(
                payload=json.dumps(update, ensure_ascii=False),
                sender=sender_of(message),
            ))
            await db.commit()
        except SQLAlchemyError as e:
            logger.warning("Could not record Telegram payload: %s", str(e))
            await db.rollback()

    async def _process_voice(
        self,
        db: AsyncSession,
        message: Dict[str, Any],
        voice: Dict[str, Any],
    ) -> str:
        """
        Steps getFile → extraction. Returns the transcription for the reply.

        Raises:
            TelegramAPIError, FileStorageError, SQLAlchemyError: abort the run.
        """
        file_id = voice.get("file_id")
        if not file_id:
            raise TelegramAPIError(message="Voice message carries no file_id", method="getFile")

        file_info = await self.telegram.get_file(file_id)
        audio = await self.telegram.download_file(file_info["file_path"])

        key = voice_key(file_id)
        await self.storage.put(key, audio)

        transcription = await self._transcribe(audio, voice.get("mime_type") or "audio/ogg")

        event = Event(
            telegram_file_id=file_id,
            audio_url=f"/api/audio/{key}",
            transcription=transcription,
            raw_metadata=json.dumps(message, ensure_ascii=False),
        )
        db.add(event)
        await db.commit()
        logger.info("Event %d stored for file %s (%d chars)", event.id, file_id, len(transcription))

        if should_extract(transcription):
            await self._extract(db, event)

        return transcription

    async def _transcribe(self, audio: bytes, mime_type: str) -> str:
        try:
            return await self.llm.transcribe_audio(audio, mime_type)
        except ExternalServiceError as e:
            logger.warning("Transcription failed: %s", e.message)
            return TRANSCRIPTION_FAILED

    async def _extract(self, db: AsyncSession, event: Event) -> bool:
        """
        Ask the model for structured fields and persist them.

        Returns:
            True when the four event_data rows were written and the event
            marked processed; False when the call or the parse failed.
        """
        try:
            response = await self.llm.complete(EXTRACTION_SYSTEM_PROMPT, event.transcription)
        except ExternalServiceError as e:
            logger.warning("Extraction call failed for event %d: %s", event.id, e.message)
            return False

        extracted = parse_extraction(response)
        if extracted is None:
            logger.warning("Extraction for event %d produced no usable data", event.id)
            return False

        db.add_all(
            EventData(event_id=event.id, key=key, value=value)
            for key, value in extracted.to_rows()
        )
        event.processed = True
        await db.commit()
        logger.info(
            "Event %d processed: category=%s importance=%s",
            event.id,
            extracted.category,
            extracted.importance,
        )
        return True

    async def _reply(self, chat_id: Optional[int], text: str, parse_mode: Optional[str] = None) -> None:
        if chat_id is None:
            logger.warning("Cannot reply: update has no chat id")
            return
        try:
            await self.telegram.send_message(chat_id, text, parse_mode=parse_mode)
        except TelegramAPIError as e:
            logger.warning("Reply to chat %s failed: %s", chat_id, e.message)


# ── Singleton Instance ────────────────────────────────────────────────────
ingestion_service = IngestionService()
