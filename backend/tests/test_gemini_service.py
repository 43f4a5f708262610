"""
DLE Backend - Gemini Service Unit Tests (Mocked)
==================================================

What:  Tests for GeminiService with the Google Generative AI SDK patched out.
How:   Patches genai and the model objects to simulate success and failure.

What we test:
    ✅ Circuit breaker state transitions
    ✅ Transcription sends the audio as an inline blob
    ✅ Completion asks for JSON output with the system instruction
    ✅ Failures become LLMServiceError and count against the breaker
    ✅ Open circuit rejects calls without touching the API
    ❌ Real API calls
"""

import time

import pytest
from unittest.mock import patch, MagicMock, AsyncMock

from app.services.gemini_service import GeminiService, CircuitBreaker
from app.exceptions import CircuitBreakerOpenError, LLMServiceError


def _response(text):
    response = MagicMock()
    response.text = text
    return response


class TestCircuitBreaker:

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == "closed"
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == "closed"
        assert cb.can_execute() is True

    def test_opens_at_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == "open"

    def test_open_circuit_rejects_calls(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        cb.record_failure()

        with pytest.raises(CircuitBreakerOpenError):
            cb.can_execute()

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.failure_count == 2

        cb.record_success()
        assert cb.failure_count == 0
        assert cb.state == "closed"

    def test_half_open_after_recovery_timeout(self):
        """With a 0s timeout the next check moves OPEN → HALF_OPEN and lets one call through."""
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        assert cb.state == "open"

        time.sleep(0.01)
        assert cb.can_execute() is True
        assert cb.state == "half_open"

    def test_failure_in_half_open_reopens(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()

        cb.record_failure()
        assert cb.state == "open"

    def test_success_after_half_open_closes(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()

        cb.record_success()
        assert cb.state == "closed"
        assert cb.failure_count == 0


class TestGeminiServiceMocked:

    @pytest.mark.asyncio
    async def test_transcribe_audio_sends_inline_blob(self):
        with patch('app.services.gemini_service.genai'):
            service = GeminiService()
            service.transcription_model = MagicMock()
            service.transcription_model.generate_content_async = AsyncMock(
                return_value=_response("  Picked up the kids at four.  ")
            )

            result = await service.transcribe_audio(b"OggS-audio", "audio/ogg")

            assert result == "Picked up the kids at four."
            contents = service.transcription_model.generate_content_async.call_args.args[0]
            assert contents[0] == GeminiService.TRANSCRIBE_PROMPT
            assert contents[1] == {"mime_type": "audio/ogg", "data": b"OggS-audio"}

    @pytest.mark.asyncio
    async def test_complete_requests_json_with_system_instruction(self):
        with patch('app.services.gemini_service.genai') as mock_genai:
            model = MagicMock()
            model.generate_content_async = AsyncMock(return_value=_response('{"summary": "x"}'))
            mock_genai.GenerativeModel.return_value = model
            service = GeminiService()

            result = await service.complete("system prompt", "Paid rent today")

            assert result == '{"summary": "x"}'
            _, kwargs = mock_genai.GenerativeModel.call_args
            assert kwargs["system_instruction"] == "system prompt"
            assert kwargs["generation_config"] == {"response_mime_type": "application/json"}
            model.generate_content_async.assert_awaited_once()
            assert model.generate_content_async.call_args.args[0] == ["Paid rent today"]

    @pytest.mark.asyncio
    async def test_empty_response_text_returns_empty_string(self):
        with patch('app.services.gemini_service.genai'):
            service = GeminiService()
            service.transcription_model = MagicMock()
            service.transcription_model.generate_content_async = AsyncMock(return_value=_response(None))

            assert await service.transcribe_audio(b"audio") == ""

    @pytest.mark.asyncio
    async def test_failure_raises_llm_error_and_counts(self):
        with patch('app.services.gemini_service.genai'):
            service = GeminiService()
            with patch.object(
                service, "_call_gemini_with_retry", AsyncMock(side_effect=RuntimeError("quota"))
            ):
                with pytest.raises(LLMServiceError):
                    await service.transcribe_audio(b"audio")

            assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_circuit_breaker_open_skips_api(self):
        with patch('app.services.gemini_service.genai'):
            service = GeminiService()
            service.transcription_model = MagicMock()
            service.transcription_model.generate_content_async = AsyncMock()

            for _ in range(service.circuit_breaker.failure_threshold):
                service.circuit_breaker.record_failure()

            with pytest.raises(CircuitBreakerOpenError):
                await service.transcribe_audio(b"audio")
            service.transcription_model.generate_content_async.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_health_check_false_without_api_key(self):
        with patch('app.services.gemini_service.genai') as mock_genai:
            service = GeminiService()
            assert await service.health_check() is False
            mock_genai.list_models.assert_not_called()
