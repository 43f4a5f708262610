"""
DLE Backend - Habit Service Tests
===================================

What:  Tests for check-ins, streaks and the habit read models.
How:   Real ORM writes on in-memory SQLite; Gemini and the object store are
       patched where voice notes are involved.

What we test:
    ✅ Toggle: absent → completed → incomplete → completed, count mirrors it
    ✅ Log: upsert on (habit, date) with partial overwrite
    ✅ Streak: today may be missing, a gap ends the run
    ✅ Stats, today view and family summary
    ✅ init-defaults copies templates once
    ✅ Voice notes: stored, transcribed, tolerant of transcription failure
"""

from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from app.exceptions import LLMServiceError, NotFoundError, ValidationError
from app.models.habit import DefaultHabit, HabitLog
from app.schemas.habit import HabitLogWrite, HabitWrite, InitDefaultsSkipped
from app.services.habit_service import HabitService, compute_streak

TODAY = date(2024, 6, 10)


class TestComputeStreak:

    def test_today_missing_still_counts_from_yesterday(self):
        dates = [TODAY - timedelta(days=d) for d in (1, 2, 3, 5)]
        assert compute_streak(dates, TODAY) == 3

    def test_today_completed_counts(self):
        dates = [TODAY - timedelta(days=d) for d in (0, 1)]
        assert compute_streak(dates, TODAY) == 2

    def test_yesterday_missing_ends_streak(self):
        dates = [TODAY - timedelta(days=d) for d in (2, 3)]
        assert compute_streak(dates, TODAY) == 0

    def test_bounded_by_window(self):
        dates = [TODAY - timedelta(days=d) for d in range(100)]
        assert compute_streak(dates, TODAY, window=60) == 60

    def test_empty(self):
        assert compute_streak([], TODAY) == 0


class TestHabitCheckIns:

    def setup_method(self):
        self.service = HabitService()

    async def _habit(self, db, person, name="Drink Water"):
        return await self.service.create_habit(db, person.id, HabitWrite(name=name))

    @pytest.mark.asyncio
    async def test_create_habit_defaults(self, db_session, person):
        habit = await self._habit(db_session, person)

        assert habit.frequency == "daily"
        assert habit.target_count == 1
        assert habit.icon == "✓"
        assert habit.color == "#3b82f6"
        assert habit.is_active is True

    @pytest.mark.asyncio
    async def test_create_habit_requires_name_and_person(self, db_session, person):
        with pytest.raises(ValidationError):
            await self.service.create_habit(db_session, person.id, HabitWrite(name=""))
        with pytest.raises(NotFoundError):
            await self.service.create_habit(db_session, 999, HabitWrite(name="Walk"))

    @pytest.mark.asyncio
    async def test_toggle_flips_and_mirrors_count(self, db_session, person):
        habit = await self._habit(db_session, person)

        first = await self.service.toggle(db_session, habit.id, TODAY)
        assert (first.completed, first.count) == (True, 1)

        second = await self.service.toggle(db_session, habit.id, TODAY)
        assert (second.completed, second.count) == (False, 0)
        assert second.id == first.id

        third = await self.service.toggle(db_session, habit.id, TODAY)
        assert (third.completed, third.count) == (True, 1)

        rows = await db_session.scalar(select(func.count(HabitLog.id)))
        assert rows == 1

    @pytest.mark.asyncio
    async def test_toggle_missing_habit(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.toggle(db_session, 404, TODAY)

    @pytest.mark.asyncio
    async def test_log_creates_then_partially_overwrites(self, db_session, person):
        habit = await self._habit(db_session, person)

        created = await self.service.log(
            db_session, habit.id, HabitLogWrite(date=TODAY, completed=True, note="8 glasses")
        )
        assert created.completed is True
        assert created.count == 1
        assert created.note == "8 glasses"
        assert created.person_id == person.id

        updated = await self.service.log(db_session, habit.id, HabitLogWrite(date=TODAY, count=6))
        assert updated.id == created.id
        assert updated.count == 6
        assert updated.completed is True
        assert updated.note == "8 glasses"

    @pytest.mark.asyncio
    async def test_log_incomplete_defaults_count_zero(self, db_session, person):
        habit = await self._habit(db_session, person)

        entry = await self.service.log(db_session, habit.id, HabitLogWrite(date=TODAY, completed=False))
        assert entry.count == 0

    @pytest.mark.asyncio
    async def test_delete_habit_removes_logs(self, db_session, person):
        habit = await self._habit(db_session, person)
        await self.service.toggle(db_session, habit.id, TODAY)

        await self.service.delete_habit(db_session, habit.id)

        assert await db_session.scalar(select(func.count(HabitLog.id))) == 0
        with pytest.raises(NotFoundError):
            await self.service.delete_habit(db_session, habit.id)


class TestHabitViews:

    def setup_method(self):
        self.service = HabitService()

    @pytest.mark.asyncio
    async def test_stats_streak_with_today_unlogged(self, db_session, person):
        habit = await self.service.create_habit(db_session, person.id, HabitWrite(name="Read"))
        for offset in (1, 2, 3, 5):
            await self.service.toggle(db_session, habit.id, TODAY - timedelta(days=offset))
        await self.service.log(
            db_session, habit.id, HabitLogWrite(date=TODAY - timedelta(days=4), completed=False)
        )

        [stat] = await self.service.stats(db_session, person.id, days=30, today=TODAY)

        assert stat.current_streak == 3
        assert stat.completed_count == 4
        assert stat.total_logs == 5
        assert stat.total_days == 30

    @pytest.mark.asyncio
    async def test_stats_window_excludes_old_logs(self, db_session, person):
        habit = await self.service.create_habit(db_session, person.id, HabitWrite(name="Run"))
        await self.service.toggle(db_session, habit.id, TODAY - timedelta(days=40))

        [stat] = await self.service.stats(db_session, person.id, days=30, today=TODAY)

        assert stat.total_logs == 0
        assert stat.completed_count == 0

    @pytest.mark.asyncio
    async def test_today_view(self, db_session, person):
        done = await self.service.create_habit(db_session, person.id, HabitWrite(name="Walk", sort_order=1))
        pending = await self.service.create_habit(db_session, person.id, HabitWrite(name="Stretch", sort_order=2))
        retired = await self.service.create_habit(db_session, person.id, HabitWrite(name="Retired"))
        await self.service.update_habit(
            db_session, retired.id, HabitWrite(name="Retired", is_active=False)
        )
        await self.service.toggle(db_session, done.id, TODAY)

        items = await self.service.today(db_session, person.id, today=TODAY)

        assert [i.id for i in items] == [done.id, pending.id]
        assert items[0].completed is True
        assert items[0].log_count == 1
        assert items[1].log_id is None
        assert items[1].completed is None

    @pytest.mark.asyncio
    async def test_list_logs_by_date_and_range(self, db_session, person):
        habit = await self.service.create_habit(db_session, person.id, HabitWrite(name="Walk", icon="🚶"))
        for offset in range(3):
            await self.service.toggle(db_session, habit.id, TODAY - timedelta(days=offset))

        one_day = await self.service.list_logs(db_session, person.id, log_date=TODAY)
        assert len(one_day) == 1
        assert one_day[0].habit_name == "Walk"
        assert one_day[0].habit_icon == "🚶"

        ranged = await self.service.list_logs(
            db_session, person.id, start_date=TODAY - timedelta(days=1), end_date=TODAY
        )
        assert [entry.log_date for entry in ranged] == [TODAY, TODAY - timedelta(days=1)]

    @pytest.mark.asyncio
    async def test_family_summary_rounds_half_up(self, db_session, person):
        habits = [
            await self.service.create_habit(db_session, person.id, HabitWrite(name=n))
            for n in ("A", "B", "C")
        ]
        await self.service.toggle(db_session, habits[0].id, TODAY)
        await self.service.toggle(db_session, habits[1].id, TODAY)

        [member] = await self.service.family_summary(db_session, today=TODAY)

        assert member.id == person.id
        assert member.total_habits == 3
        assert member.completed_habits == 2
        assert member.completion_percentage == 67

    @pytest.mark.asyncio
    async def test_init_defaults_once(self, db_session, person):
        db_session.add_all([
            DefaultHabit(name="Drink Water", icon="💧", sort_order=1),
            DefaultHabit(name="Exercise", icon="🏃", sort_order=2),
        ])
        await db_session.flush()

        created = await self.service.init_defaults(db_session, person.id)
        assert [h.name for h in created] == ["Drink Water", "Exercise"]
        assert all(h.person_id == person.id for h in created)

        skipped = await self.service.init_defaults(db_session, person.id)
        assert isinstance(skipped, InitDefaultsSkipped)
        assert skipped.count == 2


class TestHabitVoiceNotes:

    def setup_method(self):
        self.service = HabitService()

    @pytest.mark.asyncio
    async def test_voice_note_creates_incomplete_log(self, db_session, person, temp_storage):
        habit = await self.service.create_habit(db_session, person.id, HabitWrite(name="Meditate"))

        with patch("app.services.habit_service.storage_service", temp_storage), \
             patch("app.services.habit_service.gemini_service") as mock_gemini:
            mock_gemini.transcribe_audio = AsyncMock(return_value="Ten calm minutes")
            entry = await self.service.add_voice_note(db_session, habit.id, b"OggS", log_date=TODAY)

        assert entry.completed is False
        assert entry.count == 0
        assert entry.transcription == "Ten calm minutes"
        assert entry.note == "Ten calm minutes"
        key = entry.voice_url.removeprefix("/api/audio/")
        assert key.startswith(f"habit-notes/{habit.id}_2024-06-10_")
        assert await temp_storage.exists(key)

    @pytest.mark.asyncio
    async def test_voice_note_appends_to_existing_note(self, db_session, person, temp_storage):
        habit = await self.service.create_habit(db_session, person.id, HabitWrite(name="Walk"))
        await self.service.log(db_session, habit.id, HabitLogWrite(date=TODAY, completed=True, note="Park"))

        with patch("app.services.habit_service.storage_service", temp_storage), \
             patch("app.services.habit_service.gemini_service") as mock_gemini:
            mock_gemini.transcribe_audio = AsyncMock(return_value="with the dog")
            entry = await self.service.add_voice_note(db_session, habit.id, b"OggS", log_date=TODAY)

        assert entry.completed is True
        assert entry.note == "Park with the dog"

    @pytest.mark.asyncio
    async def test_voice_note_survives_transcription_failure(self, db_session, person, temp_storage):
        habit = await self.service.create_habit(db_session, person.id, HabitWrite(name="Walk"))

        with patch("app.services.habit_service.storage_service", temp_storage), \
             patch("app.services.habit_service.gemini_service") as mock_gemini:
            mock_gemini.transcribe_audio = AsyncMock(side_effect=LLMServiceError())
            entry = await self.service.add_voice_note(db_session, habit.id, b"OggS", log_date=TODAY)

        assert entry.transcription == ""
        assert entry.voice_url.startswith("/api/audio/habit-notes/")

    @pytest.mark.asyncio
    async def test_voice_note_rejects_empty_audio(self, db_session, person, temp_storage):
        habit = await self.service.create_habit(db_session, person.id, HabitWrite(name="Walk"))

        with patch("app.services.habit_service.storage_service", temp_storage):
            with pytest.raises(ValidationError):
                await self.service.add_voice_note(db_session, habit.id, b"", log_date=TODAY)
