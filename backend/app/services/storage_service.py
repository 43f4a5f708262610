"""
DLE Backend - Object Store Service
====================================

What:  Key/value blob store for note photos and voice recordings.
How:   Each object key is a relative path below STORAGE_ROOT; bytes are
       written and read with aiofiles so the event loop never blocks on disk.
Who:   NoteService (photos), HabitService (habit voice notes),
       IngestionService (Telegram voice notes), and the proxy routes
       GET /api/photo/{key} and GET /api/audio/{key}.

Key Conventions:
    photos/{noteId}_{timestamp}_{filename}          note photo
    habit-notes/{habitId}_{logDate}_{timestamp}.ogg habit voice note
    {telegramFileId}.ogg                            ingested Telegram voice note

    Timestamps are milliseconds since the epoch. Objects are never served
    directly; every read goes through the API proxy routes.

Security Model:
    - Keys are resolved against the storage root and rejected if the result
      escapes it (e.g. "../../etc/passwd").
    - User-supplied filenames are reduced to their final path component
      before they become part of a key.

Failure Model:
    There is no transaction spanning the database and this store. Callers
    that delete rows and blobs together delete the blob first and tolerate
    its failure, so an orphan blob is the worst case.
"""

import logging
import mimetypes
import os
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

import aiofiles

from app.config import settings
from app.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class StoredObject:
    """An object read back from the store."""

    key: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)


def _now_ms() -> int:
    return int(time.time() * 1000)


def sanitize_filename(filename: Optional[str]) -> str:
    """Strips directory components from a client filename; falls back to 'upload'."""
    name = Path((filename or "").replace("\\", "/")).name.strip()
    return name or "upload"


def photo_key(note_id: int, filename: Optional[str], timestamp_ms: Optional[int] = None) -> str:
    ts = timestamp_ms if timestamp_ms is not None else _now_ms()
    return f"photos/{note_id}_{ts}_{sanitize_filename(filename)}"


def habit_note_key(habit_id: int, log_date: date, timestamp_ms: Optional[int] = None) -> str:
    ts = timestamp_ms if timestamp_ms is not None else _now_ms()
    return f"habit-notes/{habit_id}_{log_date.isoformat()}_{ts}.ogg"


def voice_key(telegram_file_id: str) -> str:
    return f"{telegram_file_id}.ogg"


class StorageService:
    """
    Local-volume object store.

    Lifecycle of an object:
        1. put(key, bytes) → file written at STORAGE_ROOT/key (parents created)
        2. get(key)        → bytes + content type guessed from the key's extension
        3. delete(key)     → file removed; deleting a missing key is a no-op

    Directory Structure:
        storage/
        ├── photos/
        │   └── 12_1718000000000_receipt.jpg
        ├── habit-notes/
        │   └── 3_2024-06-10_1718000000000.ogg
        └── AwACAgIAAxkBAAIB.ogg
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
                          If None, uses settings.storage_root.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("StorageService initialized with storage_root=%s", self.storage_root)

    def _resolve(self, key: str) -> Path:
        """
        Map an object key to an absolute path inside the storage root.

        Raises:
            ValidationError if the key is empty, absolute, or escapes the root.
        """
        if not key or key.startswith("/") or "\x00" in key:
            raise ValidationError(message="Invalid storage key", field="key")
        path = (self.storage_root / key).resolve()
        if path != self.storage_root and self.storage_root not in path.parents:
            raise ValidationError(
                message="Invalid storage key",
                field="key",
                context={"key": key},
            )
        return path

    def validate_size(self, content: bytes) -> None:
        """
        Reject empty uploads and uploads above settings.max_file_size.

        Raises:
            ValidationError with a human-readable size message.
        """
        if not content:
            raise ValidationError(message="Uploaded file is empty", field="file")
        if len(content) > settings.max_file_size:
            max_mb = settings.max_file_size / (1024 * 1024)
            raise ValidationError(
                message=(
                    f"File size ({len(content) / (1024 * 1024):.1f}MB) "
                    f"exceeds maximum of {max_mb:.0f}MB."
                ),
                field="file",
                context={"max_size_mb": max_mb, "actual_size": len(content)},
            )

    @staticmethod
    def guess_content_type(key: str, default: str = DEFAULT_CONTENT_TYPE) -> str:
        content_type, _ = mimetypes.guess_type(key)
        return content_type or default

    async def put(self, key: str, content: bytes) -> str:
        """
        Write an object, replacing any existing object with the same key.

        Returns:
            The key, for callers that build it inline.

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store object %s: %s", key, str(e))
            raise FileStorageError(
                message="Failed to save file. Please try again.",
                context={"key": key, "os_error": str(e)},
            )

        logger.info("Object stored: %s (%d bytes)", key, len(content))
        return key

    async def get(self, key: str, default_content_type: str = DEFAULT_CONTENT_TYPE) -> StoredObject:
        """
        Read an object.

        Raises:
            NotFoundError if no object exists under the key.
            FileStorageError on other I/O failures.
        """
        path = self._resolve(key)
        if not path.is_file():
            raise NotFoundError(resource="object", resource_id=key)
        try:
            async with aiofiles.open(path, "rb") as f:
                content = await f.read()
        except OSError as e:
            logger.error("Failed to read object %s: %s", key, str(e))
            raise FileStorageError(
                message="Failed to read file.",
                context={"key": key, "os_error": str(e)},
            )
        return StoredObject(
            key=key,
            content=content,
            content_type=self.guess_content_type(key, default_content_type),
        )

    async def delete(self, key: str) -> bool:
        """
        Remove an object.

        Returns:
            True if an object was removed, False if the key was already absent.

        Raises:
            FileStorageError if the file exists but cannot be removed. Callers
            deleting database rows alongside catch this and carry on.
        """
        path = self._resolve(key)
        try:
            if not path.exists():
                logger.debug("Delete: object already gone: %s", key)
                return False
            os.remove(path)
        except OSError as e:
            logger.error("Failed to delete object %s: %s", key, str(e))
            raise FileStorageError(
                message="Failed to delete file.",
                context={"key": key, "os_error": str(e)},
            )
        logger.info("Object deleted: %s", key)
        return True

    async def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()


# ── Singleton Instance ────────────────────────────────────────────────────
storage_service = StorageService()
