"""
DLE Backend - Abstract AI Service Interface
=============================================

What:  Abstract base class for the two hosted-AI capabilities the backend uses:
       speech-to-text and chat-style completion.
How:   Concrete providers inherit from LLMService and implement
       transcribe_audio(), complete() and health_check().
Who:   IngestionService (transcribe, then extract) and HabitService
       (transcribe a habit voice note).

Callers depend on this interface only, so tests substitute an AsyncMock and
the provider can change without touching the pipeline.
"""

from abc import ABC, abstractmethod


class LLMService(ABC):
    """
    Abstract interface for hosted AI calls.

    Contract:
        - Implementations handle their own retry logic and error translation
        - Every provider-specific failure surfaces as LLMServiceError or
          CircuitBreakerOpenError
        - Callers decide how to degrade (placeholder text, skipped extraction)
    """

    @abstractmethod
    async def transcribe_audio(self, audio: bytes, mime_type: str = "audio/ogg") -> str:
        """
        Convert recorded speech into text.

        Args:
            audio:     Raw audio bytes (Telegram voice notes are OGG/Opus).
            mime_type: Content type of the audio.

        Returns:
            The transcription; empty string when nothing was said.

        Raises:
            LLMServiceError: When the AI service fails after all retries.
            CircuitBreakerOpenError: When recent failures tripped the breaker.
        """
        ...

    @abstractmethod
    async def complete(self, system_prompt: str, user_message: str, json_output: bool = True) -> str:
        """
        Run one chat completion (system + user message) and return the raw text.

        When json_output is True the provider is asked for a JSON response
        where it supports that. The text may still be wrapped in markdown
        fences, so callers strip them before decoding.

        Raises:
            LLMServiceError / CircuitBreakerOpenError as for transcribe_audio().
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Lightweight connectivity test (does NOT consume generation quota).

        Returns: True if the service is reachable, False otherwise.
        """
        ...
