"""
DLE Backend - Telegram Ingestion Pipeline Tests
=================================================

What:  End-to-end runs of IngestionService.handle_update with every outside
       collaborator faked.
How:   Telegram is an httpx.MockTransport that records requests; Gemini is
       an AsyncMock; storage is a tmp_path StorageService; the database is
       in-memory SQLite.

What we test:
    ✅ Voice message → debug log, stored audio, Event, 4 event_data rows,
       processed flag, ack + HTML transcript reply
    ✅ /start and non-voice messages get canned replies
    ✅ Transcription failure still stores the Event with the placeholder
    ✅ Unparseable extraction leaves the Event unprocessed
    ✅ A getFile failure produces the error reply and no Event
    ✅ An object-store write failure produces the error reply and no Event
    ✅ A redelivered update is processed again (no dedup)
    ✅ Reply helpers
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import select

from app.exceptions import FileStorageError, LLMServiceError
from app.models.event import Event, EventData, TelegramDebugLog
from app.services.ingestion_service import (
    ERROR_REPLY,
    GREETING_REPLY,
    PROCESSING_REPLY,
    SEND_VOICE_REPLY,
    TRANSCRIPTION_FAILED,
    IngestionService,
    format_transcription_reply,
    sender_of,
)
from app.services.telegram_service import TelegramService

CHAT_ID = 555


class FakeBotAPI:
    """Minimal Bot API: getFile, file download and sendMessage."""

    def __init__(self, get_file_ok: bool = True):
        self.get_file_ok = get_file_ok
        self.sent = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/getFile"):
            if not self.get_file_ok:
                return httpx.Response(400, json={"ok": False, "description": "file is too big"})
            return httpx.Response(200, json={"ok": True, "result": {"file_id": "VOICE1", "file_path": "voice/v1.oga"}})
        if path.startswith("/file/"):
            return httpx.Response(200, content=b"OggS-voice")
        if path.endswith("/sendMessage"):
            self.sent.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True, "result": {"message_id": len(self.sent)}})
        return httpx.Response(404, json={"ok": False})


def _voice_update(**voice):
    return {
        "update_id": 1001,
        "message": {
            "message_id": 7,
            "from": {"id": 42, "username": "asha"},
            "chat": {"id": CHAT_ID, "type": "private"},
            "voice": {"file_id": "VOICE1", "duration": 4, "mime_type": "audio/ogg", **voice},
        },
    }


@pytest.fixture
def bot():
    return FakeBotAPI()


@pytest.fixture
def make_service(temp_storage, mock_llm):
    def _make(bot_api):
        telegram = TelegramService(
            token="123:abc",
            api_base="https://api.telegram.test",
            transport=httpx.MockTransport(bot_api),
        )
        return IngestionService(telegram=telegram, llm=mock_llm, storage=temp_storage)
    return _make


async def _all(db, model):
    return list((await db.execute(select(model).order_by(model.id))).scalars().all())


class TestVoicePipeline:

    @pytest.mark.asyncio
    async def test_voice_message_full_run(self, db_session, bot, make_service, mock_llm, temp_storage):
        mock_llm.transcribe_audio.return_value = "Paid 500 <rupees> to Ravi for groceries"
        mock_llm.complete.return_value = (
            '```json\n{"summary": "Paid Ravi", "category": "Finance", "importance": "Medium",'
            ' "entities": {"people": ["Ravi"]}}\n```'
        )

        await make_service(bot).handle_update(db_session, _voice_update())

        [debug] = await _all(db_session, TelegramDebugLog)
        assert debug.sender == "asha"
        assert json.loads(debug.payload)["update_id"] == 1001

        assert (await temp_storage.get("VOICE1.ogg")).content == b"OggS-voice"
        mock_llm.transcribe_audio.assert_awaited_once_with(b"OggS-voice", "audio/ogg")

        [event] = await _all(db_session, Event)
        assert event.telegram_file_id == "VOICE1"
        assert event.audio_url == "/api/audio/VOICE1.ogg"
        assert event.transcription == "Paid 500 <rupees> to Ravi for groceries"
        assert json.loads(event.raw_metadata)["message_id"] == 7
        assert event.processed is True

        rows = {(d.key, d.value) for d in await _all(db_session, EventData)}
        assert rows == {
            ("summary", "Paid Ravi"),
            ("category", "Finance"),
            ("importance", "Medium"),
            ("entities", '{"people": ["Ravi"]}'),
        }

        assert [m["text"] for m in bot.sent[:1]] == [PROCESSING_REPLY]
        final = bot.sent[-1]
        assert final["parse_mode"] == "HTML"
        assert "&lt;rupees&gt;" in final["text"]
        assert all(m["chat_id"] == CHAT_ID for m in bot.sent)

    @pytest.mark.asyncio
    async def test_short_transcription_skips_extraction(self, db_session, bot, make_service, mock_llm):
        mock_llm.transcribe_audio.return_value = "Hi"

        await make_service(bot).handle_update(db_session, _voice_update())

        [event] = await _all(db_session, Event)
        assert event.processed is False
        mock_llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transcription_failure_is_recorded(self, db_session, bot, make_service, mock_llm):
        mock_llm.transcribe_audio.side_effect = LLMServiceError()

        await make_service(bot).handle_update(db_session, _voice_update())

        [event] = await _all(db_session, Event)
        assert event.transcription == TRANSCRIPTION_FAILED
        # "(Transcription failed)" is longer than five characters, so extraction is still attempted
        mock_llm.complete.assert_awaited_once()
        assert TRANSCRIPTION_FAILED in bot.sent[-1]["text"]

    @pytest.mark.asyncio
    async def test_unparseable_extraction_leaves_event_unprocessed(
        self, db_session, bot, make_service, mock_llm
    ):
        mock_llm.transcribe_audio.return_value = "Long enough transcription"
        mock_llm.complete.return_value = "Sorry, I cannot help with that."

        await make_service(bot).handle_update(db_session, _voice_update())

        [event] = await _all(db_session, Event)
        assert event.processed is False
        assert await _all(db_session, EventData) == []
        assert bot.sent[-1]["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    async def test_get_file_failure_sends_error_reply(self, db_session, make_service, mock_llm):
        bot = FakeBotAPI(get_file_ok=False)

        await make_service(bot).handle_update(db_session, _voice_update())

        assert await _all(db_session, Event) == []
        assert len(await _all(db_session, TelegramDebugLog)) == 1
        assert [m["text"] for m in bot.sent] == [PROCESSING_REPLY, ERROR_REPLY]
        mock_llm.transcribe_audio.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_write_failure_sends_error_reply(
        self, db_session, bot, make_service, mock_llm, temp_storage
    ):
        temp_storage.put = AsyncMock(side_effect=FileStorageError(message="disk full"))

        await make_service(bot).handle_update(db_session, _voice_update())

        temp_storage.put.assert_awaited_once()
        assert await _all(db_session, Event) == []
        assert len(await _all(db_session, TelegramDebugLog)) == 1
        assert [m["text"] for m in bot.sent] == [PROCESSING_REPLY, ERROR_REPLY]
        mock_llm.transcribe_audio.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_redelivered_update_creates_second_event(self, db_session, bot, make_service, mock_llm):
        mock_llm.transcribe_audio.return_value = "Hi"
        service = make_service(bot)

        await service.handle_update(db_session, _voice_update())
        await service.handle_update(db_session, _voice_update())

        events = await _all(db_session, Event)
        assert [e.telegram_file_id for e in events] == ["VOICE1", "VOICE1"]
        assert len(await _all(db_session, TelegramDebugLog)) == 2


class TestNonVoiceMessages:

    @pytest.mark.asyncio
    async def test_start_command_greets(self, db_session, bot, make_service):
        update = {"update_id": 1, "message": {"chat": {"id": CHAT_ID}, "text": "/start"}}

        await make_service(bot).handle_update(db_session, update)

        assert [m["text"] for m in bot.sent] == [GREETING_REPLY]

    @pytest.mark.asyncio
    async def test_text_message_asks_for_voice(self, db_session, bot, make_service):
        update = {"update_id": 2, "message": {"chat": {"id": CHAT_ID}, "text": "hello"}}

        await make_service(bot).handle_update(db_session, update)

        assert [m["text"] for m in bot.sent] == [SEND_VOICE_REPLY]
        assert await _all(db_session, Event) == []

    @pytest.mark.asyncio
    async def test_update_without_message_is_logged_only(self, db_session, bot, make_service):
        await make_service(bot).handle_update(db_session, {"update_id": 3, "edited_message": {}})

        assert bot.sent == []
        [debug] = await _all(db_session, TelegramDebugLog)
        assert debug.sender == "unknown"


class TestReplyHelpers:

    def test_reply_is_escaped_and_truncated(self):
        text = format_transcription_reply("<b>" + "a" * 4000)

        assert text.startswith("📝 <b>Transcription:</b>\n\n&lt;b&gt;")
        assert text.endswith("...")
        assert len(text) < 3100

    def test_escaped_reply_stays_under_telegram_limit(self):
        text = format_transcription_reply("Tom & Jerry's " * 215)
        body = text.split("\n\n", 1)[1]

        assert len(text) <= 4096
        assert len(body) <= 3003
        assert "'" in body
        assert body.endswith("...")
        assert body[:-3].rsplit("&", 1)[1].startswith("amp;")

    def test_sender_of(self):
        assert sender_of({"from": {"username": "asha", "id": 1}}) == "asha"
        assert sender_of({"from": {"id": 42}}) == "42"
        assert sender_of(None) == "unknown"
