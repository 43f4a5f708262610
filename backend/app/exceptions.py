"""
DLE Backend - Custom Exception Hierarchy
==========================================

What:  Application-specific exceptions for the different error scenarios.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) turn them into
       `{"error": message, "request_id": ...}` responses with the matching
       status code. Context is logged, never returned.
Who:   Raised by services and routes; caught by global handlers or, for the
       external-service errors, inside the ingestion pipeline.

Exception Hierarchy:
    DiaryError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── FileStorageError         → 500 Internal Server Error
    ├── DatabaseError            → 500 Internal Server Error
    ├── ConfigurationError       → 500 Internal Server Error
    ├── ExternalServiceError     → 503 (normally caught before reaching HTTP)
    │   ├── LLMServiceError
    │   ├── CircuitBreakerOpenError
    │   └── TelegramAPIError
    └── RateLimitExceededError   → 429 Too Many Requests
"""

from typing import Any, Dict, Optional


class DiaryError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(DiaryError):
    """
    Raised when client input fails validation.

    When:    Missing required field ("Name is required"), short search query,
             missing upload part.
    HTTP:    400 Bad Request

    Example response:
        {"error": "Content is required", "request_id": "a1b2c3d4"}
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(DiaryError):
    """Raised when a caller fails a shared-secret check (Telegram webhook)."""

    status_code = 401

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(DiaryError):
    """
    Raised when a requested resource does not exist.

    When:    GET/PUT/DELETE on a missing person, tag, note, photo or habit;
             a storage key that has no object.
    HTTP:    404 Not Found

    SQLAlchemy returns None for missing rows; services convert that into
    this exception so routes never inspect None.
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource[:1].upper()}{resource[1:]} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)
        self.resource = resource


class ConflictError(DiaryError):
    """
    Raised when a write would violate a uniqueness rule.

    When:    Creating a tag whose name already exists.
    HTTP:    409 Conflict
    """

    status_code = 409

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(DiaryError):
    """
    Raised when object store operations fail.

    When:    Disk full, permission denied, key escaping the storage root.
    HTTP:    500 Internal Server Error (generic message; path logged only)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(DiaryError):
    """
    Raised when database operations fail unexpectedly.

    The client always gets a generic message. SQL text, constraint names and
    driver errors go to the server log only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConfigurationError(DiaryError):
    """
    Raised when a request needs a setting that is not configured.

    When:    Telegram webhook called without TELEGRAM_BOT_TOKEN
             ("Bot Not Configured").
    """

    def __init__(
        self,
        message: str = "Service is not configured",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExternalServiceError(DiaryError):
    """
    Base for failures of hosted collaborators (Gemini, Telegram).

    These are caught locally by the ingestion pipeline and the habit
    voice-note handler and degraded to placeholder values. The 503 mapping
    only applies if one escapes a handler.
    """

    status_code = 503

    def __init__(
        self,
        message: str = "An external service is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMServiceError(ExternalServiceError):
    """
    Raised when a Gemini call fails after all retries.

    When:    After tenacity retries are exhausted, or the response is blocked/empty
             in a way the SDK reports as an exception.
    """

    def __init__(
        self,
        message: str = "AI service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(ExternalServiceError):
    """
    Raised when the Gemini circuit breaker is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for recovery_timeout seconds)
        → After the timeout → HALF-OPEN (allow one test call)
        → Test succeeds → CLOSED; test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"It will be retried in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class TelegramAPIError(ExternalServiceError):
    """
    Raised when a Telegram Bot API call fails.

    When:    Transport error, non-2xx status, or a JSON body without "ok": true
             (e.g. getFile for an expired file id).
    """

    def __init__(
        self,
        message: str = "Telegram API request failed",
        method: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if method:
            ctx["method"] = method
        super().__init__(message=message, context=ctx)
        self.method = method


class RateLimitExceededError(DiaryError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests, with a Retry-After header.
    """

    status_code = 429

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
