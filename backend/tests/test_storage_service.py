"""
DLE Backend - Storage Service Tests
=====================================

What:  Tests for the local object store and its key builders.
How:   Each test gets a StorageService rooted in pytest's tmp_path.

What we test:
    ✅ put / get / delete / exists on nested keys
    ✅ Content type guessed from the key, with a caller default
    ✅ Missing objects: get → NotFoundError, delete → False
    ✅ Keys that escape the root are rejected
    ✅ Size validation
    ✅ Key formats for photos, habit notes and bot voice notes
"""

from datetime import date
from unittest.mock import patch

import pytest

from app.exceptions import FileStorageError, NotFoundError, ValidationError
from app.services.storage_service import (
    habit_note_key,
    photo_key,
    sanitize_filename,
    voice_key,
)


class TestObjectLifecycle:

    @pytest.mark.asyncio
    async def test_put_get_delete(self, temp_storage):
        key = "photos/1_1718000000000_cake.jpg"

        assert await temp_storage.put(key, b"jpeg-bytes") == key
        assert await temp_storage.exists(key) is True

        stored = await temp_storage.get(key)
        assert stored.content == b"jpeg-bytes"
        assert stored.content_type == "image/jpeg"
        assert stored.size == 10

        assert await temp_storage.delete(key) is True
        assert await temp_storage.exists(key) is False

    @pytest.mark.asyncio
    async def test_put_overwrites(self, temp_storage):
        await temp_storage.put("a.ogg", b"first")
        await temp_storage.put("a.ogg", b"second")

        assert (await temp_storage.get("a.ogg")).content == b"second"

    @pytest.mark.asyncio
    async def test_unknown_extension_uses_default_type(self, temp_storage):
        await temp_storage.put("blob", b"x")

        stored = await temp_storage.get("blob", default_content_type="audio/ogg")
        assert stored.content_type == "audio/ogg"

    @pytest.mark.asyncio
    async def test_get_missing_raises_not_found(self, temp_storage):
        with pytest.raises(NotFoundError):
            await temp_storage.get("photos/nope.jpg")

    @pytest.mark.asyncio
    async def test_delete_missing_returns_false(self, temp_storage):
        assert await temp_storage.delete("photos/nope.jpg") is False

    @pytest.mark.asyncio
    async def test_delete_os_error_raises_storage_error(self, temp_storage):
        await temp_storage.put("x.jpg", b"x")

        with patch("app.services.storage_service.os.remove", side_effect=PermissionError("denied")):
            with pytest.raises(FileStorageError):
                await temp_storage.delete("x.jpg")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["../outside.txt", "photos/../../etc/passwd", "/etc/passwd", ""])
    async def test_keys_outside_root_rejected(self, temp_storage, key):
        with pytest.raises(ValidationError):
            await temp_storage.put(key, b"x")


class TestValidateSize:

    def test_empty_rejected(self, temp_storage):
        with pytest.raises(ValidationError, match="empty"):
            temp_storage.validate_size(b"")

    def test_oversized_rejected(self, temp_storage):
        with patch("app.services.storage_service.settings") as mock_settings:
            mock_settings.max_file_size = 4
            with pytest.raises(ValidationError, match="exceeds"):
                temp_storage.validate_size(b"12345")

    def test_within_limit_accepted(self, temp_storage):
        temp_storage.validate_size(b"1234")


class TestKeys:

    def test_photo_key(self):
        assert photo_key(12, "receipt.jpg", timestamp_ms=1718000000000) == "photos/12_1718000000000_receipt.jpg"

    def test_photo_key_strips_directories(self):
        assert photo_key(1, "../../evil.png", timestamp_ms=5) == "photos/1_5_evil.png"

    def test_habit_note_key(self):
        key = habit_note_key(3, date(2024, 6, 10), timestamp_ms=1718000000000)
        assert key == "habit-notes/3_2024-06-10_1718000000000.ogg"

    def test_voice_key(self):
        assert voice_key("AwACAgIAAxkBAAIB") == "AwACAgIAAxkBAAIB.ogg"

    def test_sanitize_filename_default(self):
        assert sanitize_filename(None)
        assert "/" not in sanitize_filename("a/b/c.jpg")
