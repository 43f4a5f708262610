"""
DLE Backend - Google Gemini Service Implementation
====================================================

What:  Concrete AI service backed by Google Gemini: voice transcription and
       JSON-mode chat completion for event extraction.
How:   Sends audio as an inline blob (or a system instruction + user message)
       to a GenerativeModel, wrapped in tenacity retries and a circuit breaker.
Who:   Instantiated once at import; used by IngestionService and HabitService.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter for transient failures
    2. Circuit breaker shared by both operations, so a Gemini outage stops
       costing webhook latency after a few failed calls
    3. Per-request timeout passed through request_options
    4. Latency and response size logged per call
"""

import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Optional

import google.generativeai as genai
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
    RetryError,
)

from app.config import settings
from app.exceptions import LLMServiceError, CircuitBreakerOpenError
from app.services.llm_base import LLMService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding calls to the hosted model.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Thread Safety:
        Plain counters; state is per process. uvicorn async workers run the
        event loop on one thread, so no locking is needed.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        """
        Args:
            failure_threshold: Consecutive failures before opening circuit
            recovery_timeout: Seconds to wait before testing recovery
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Returns:
            True if the request can proceed (CLOSED, or HALF_OPEN after timeout).

        Raises:
            CircuitBreakerOpenError if the circuit is OPEN and the recovery
            timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        # HALF_OPEN: allow the test request through
        return True

    def record_success(self) -> None:
        """Record a successful call. Resets the breaker to CLOSED."""
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        """Record a failed call. May trigger CLOSED → OPEN."""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(LLMService):
    """
    Google Gemini implementation of LLMService.

    Models:
        transcription_model  audio blob + TRANSCRIBE_PROMPT → plain text
        extraction_model     system_instruction + user message → JSON text
                             (response_mime_type="application/json")

    Error Handling Chain:
        API call fails → tenacity retries (settings.retry_max_attempts)
        → All retries fail → record circuit breaker failure → LLMServiceError
        → Threshold reached → future calls rejected instantly
        → Recovery timeout → one test call (HALF_OPEN)
    """

    TRANSCRIBE_PROMPT = (
        "Transcribe this voice recording verbatim. "
        "Return only the spoken words, with no commentary, labels or timestamps. "
        "If nothing intelligible is said, return an empty response."
    )

    def __init__(self):
        if settings.gemini_api_key and settings.gemini_api_key != "your_gemini_api_key_here":
            genai.configure(api_key=settings.gemini_api_key)

        self.transcription_model = genai.GenerativeModel(settings.gemini_transcription_model)

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with transcription_model=%s, extraction_model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_transcription_model,
            settings.gemini_extraction_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    async def transcribe_audio(self, audio: bytes, mime_type: str = "audio/ogg") -> str:
        """
        Transcribe a voice recording.

        Flow:
            1. Check circuit breaker → may raise CircuitBreakerOpenError
            2. Send prompt + inline audio blob with retry logic
            3. Record success/failure in circuit breaker

        Returns:
            The stripped transcription (may be empty).
        """
        contents = [self.TRANSCRIBE_PROMPT, {"mime_type": mime_type, "data": audio}]
        return await self._guarded_call(
            "transcribe",
            lambda request_id: self._call_gemini_with_retry(
                self.transcription_model, contents, request_id, "transcribe"
            ),
            size=len(audio),
        )

    async def complete(self, system_prompt: str, user_message: str, json_output: bool = True) -> str:
        """
        Run a single-turn completion with a system instruction.

        A model object is built per call because system_instruction is bound
        at construction time in the Gemini SDK.
        """
        generation_config = {"response_mime_type": "application/json"} if json_output else None
        model = genai.GenerativeModel(
            settings.gemini_extraction_model,
            system_instruction=system_prompt,
            generation_config=generation_config,
        )
        return await self._guarded_call(
            "complete",
            lambda request_id: self._call_gemini_with_retry(
                model, [user_message], request_id, "complete"
            ),
            size=len(user_message),
        )

    async def _guarded_call(
        self,
        operation: str,
        call: Callable[[str], Awaitable[str]],
        size: int = 0,
    ) -> str:
        """
        Run one Gemini call under the circuit breaker and translate failures.

        Raises:
            CircuitBreakerOpenError: Circuit is open (too many recent failures)
            LLMServiceError: Gemini failed after all retry attempts
        """
        request_id = str(uuid.uuid4())[:8]

        self.circuit_breaker.can_execute()

        logger.info("[%s] Starting Gemini %s (input %d bytes)", request_id, operation, size)

        try:
            result = await call(request_id)
            self.circuit_breaker.record_success()
            return result

        except CircuitBreakerOpenError:
            raise
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All Gemini retries exhausted for %s: %s",
                request_id,
                operation,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise LLMServiceError(
                message="AI service failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": settings.retry_max_attempts},
            )
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Gemini %s failed: %s",
                request_id,
                operation,
                str(e),
                exc_info=True,
            )
            raise LLMServiceError(
                message=f"AI {operation} failed.",
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

    @retry(
        # The Gemini SDK raises google.api_core exceptions, not a common base
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(settings.retry_max_attempts),
        # wait = min(max_wait, min_wait * 2^attempt) + random(0, 1)
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(
        self,
        model: Any,
        contents: list,
        request_id: str,
        operation: str,
    ) -> str:
        """
        Makes the actual Gemini API call. Only this call is retried; the
        circuit breaker check in _guarded_call runs once per logical request.
        """
        start_time = time.time()

        try:
            response = await model.generate_content_async(
                contents,
                request_options={"timeout": settings.gemini_timeout},
            )

            duration_ms = (time.time() - start_time) * 1000
            text = response.text.strip() if response.text else ""

            logger.info(
                "[%s] Gemini %s completed in %.0fms, returned %d chars",
                request_id,
                operation,
                duration_ms,
                len(text),
            )
            return text

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.warning(
                "[%s] Gemini %s call failed after %.0fms: %s",
                request_id,
                operation,
                duration_ms,
                str(e),
            )
            raise

    async def health_check(self) -> bool:
        """
        Check if the Gemini API is reachable.

        Lists available models: verifies key and connectivity without
        spending generation tokens.
        """
        if not settings.gemini_api_key:
            return False
        try:
            models = genai.list_models()
            model_names = [m.name for m in models]
            for configured in {settings.gemini_transcription_model, settings.gemini_extraction_model}:
                target = f"models/{configured}"
                if target not in model_names:
                    logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False


# ── Singleton Instance ────────────────────────────────────────────────────
# Holds the circuit breaker state shared by every request in this process.
gemini_service = GeminiService()
