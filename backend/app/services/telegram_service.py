"""
DLE Backend - Telegram Bot API Client
=======================================

What:  Minimal async client for the three Bot API calls the ingestion
       pipeline needs: getFile, file download, sendMessage.
How:   httpx.AsyncClient per call with the configured timeout. Every failure
       (transport error, non-2xx status, body without "ok": true) becomes
       TelegramAPIError. No retries: a failed getFile/download aborts the
       pipeline run and a failed reply is only logged by the caller.
Who:   IngestionService.

The bot token is part of every URL, so URLs are never logged or placed in
exception messages.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.exceptions import TelegramAPIError

logger = logging.getLogger(__name__)


class TelegramService:
    """Telegram Bot API client bound to one bot token."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            token:     Bot token; defaults to settings.telegram_bot_token.
            api_base:  API origin; defaults to settings.telegram_api_base.
            timeout:   Per-request timeout in seconds.
            transport: Optional httpx transport (tests pass httpx.MockTransport).
        """
        self.token = token if token is not None else settings.telegram_bot_token
        self.api_base = (api_base or settings.telegram_api_base).rstrip("/")
        self.timeout = timeout or settings.telegram_timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _method_url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.token}/{method}"

    async def _call(self, method: str, **kwargs: Any) -> Dict[str, Any]:
        """
        Invoke a Bot API method and return its "result" field.

        Raises:
            TelegramAPIError on transport failure, non-2xx status, a
            non-JSON body, or "ok" not being true.
        """
        try:
            async with self._client() as client:
                response = await client.request(
                    "POST" if "json" in kwargs else "GET",
                    self._method_url(method),
                    **kwargs,
                )
        except httpx.HTTPError as e:
            logger.warning("Telegram %s transport error: %s", method, type(e).__name__)
            raise TelegramAPIError(
                message=f"Telegram {method} request failed",
                method=method,
                context={"error_type": type(e).__name__},
            )

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("ok"):
            description = body.get("description", "")
            logger.warning(
                "Telegram %s failed: status=%d description=%s",
                method,
                response.status_code,
                description,
            )
            raise TelegramAPIError(
                message=f"Telegram {method} failed",
                method=method,
                context={"status_code": response.status_code, "description": description},
            )

        return body.get("result") or {}

    async def get_file(self, file_id: str) -> Dict[str, Any]:
        """
        Resolve a file id to its File object ({"file_id", "file_path", ...}).

        Raises:
            TelegramAPIError if the call fails or the result has no file_path.
        """
        result = await self._call("getFile", params={"file_id": file_id})
        if not result.get("file_path"):
            raise TelegramAPIError(
                message="Telegram getFile returned no file path",
                method="getFile",
                context={"file_id": file_id},
            )
        return result

    async def download_file(self, file_path: str) -> bytes:
        """Download the raw bytes of a file resolved by get_file()."""
        url = f"{self.api_base}/file/bot{self.token}/{file_path}"
        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning("Telegram file download failed: status=%d", e.response.status_code)
            raise TelegramAPIError(
                message="Telegram file download failed",
                method="download",
                context={"status_code": e.response.status_code},
            )
        except httpx.HTTPError as e:
            logger.warning("Telegram file download transport error: %s", type(e).__name__)
            raise TelegramAPIError(
                message="Telegram file download failed",
                method="download",
                context={"error_type": type(e).__name__},
            )

        logger.info("Downloaded Telegram file %s (%d bytes)", file_path, len(response.content))
        return response.content

    async def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self._call("sendMessage", json=payload)


# ── Singleton Instance ────────────────────────────────────────────────────
telegram_service = TelegramService()
