"""
DLE Backend - Habit Tracking Service
======================================

What:  Habits per person, daily check-ins, voice notes on a check-in, and
       the statistics views (today, stats with streaks, family summary).
Who:   Routes in app.routes.habits.

Check-in State Machine (per habit, per date):
    absent ──log(completed=False)──▶ present-incomplete
    absent ──log(completed=True)───▶ present-completed
    absent ──toggle────────────────▶ present-completed (count=1)
    present-incomplete ◀──toggle──▶ present-completed   (count mirrors 0/1)
    present-* ──log(...)───────────▶ present-* with the given fields overwritten
    absent ──voice-note────────────▶ present-incomplete (note = transcription)

    "At most one log per (habit, date)" is upheld here with select-then-
    insert/update; there is no unique constraint behind it.

Dates:
    "Today" is the UTC calendar date, so check-ins made late in the evening
    west of UTC land on the next day.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple, Union

from sqlalchemy import and_, case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ExternalServiceError, NotFoundError, ValidationError
from app.models.habit import (
    DEFAULT_FREQUENCY,
    DEFAULT_HABIT_COLOR,
    DEFAULT_HABIT_ICON,
    DefaultHabit,
    Habit,
    HabitLog,
)
from app.models.mixins import utcnow
from app.models.person import Person
from app.schemas.habit import (
    DefaultHabitResponse,
    FamilyMemberSummary,
    HabitLogResponse,
    HabitLogWithHabit,
    HabitLogWrite,
    HabitResponse,
    HabitStat,
    HabitWrite,
    InitDefaultsSkipped,
    TodayHabit,
)
from app.services.gemini_service import gemini_service
from app.services.person_service import person_service
from app.services.storage_service import habit_note_key, storage_service

logger = logging.getLogger(__name__)

STREAK_WINDOW_DAYS = 60


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def compute_streak(completed_dates: Iterable[date], today: date, window: int = STREAK_WINDOW_DAYS) -> int:
    """
    Consecutive completed days ending today (or yesterday, if today is not
    yet completed).

    Walks back from `today` for at most `window` days. A missing day ends
    the streak, except for today itself.

    >>> d = date(2024, 6, 10)
    >>> compute_streak([d - timedelta(days=1), d - timedelta(days=2)], d)
    2
    """
    done = set(completed_dates)
    streak = 0
    for i in range(window):
        if today - timedelta(days=i) in done:
            streak += 1
        elif i > 0:
            break
    return streak


def _require_name(data: HabitWrite) -> str:
    if not data.name:
        raise ValidationError(message="Name is required", field="name")
    return data.name


class HabitService:

    # ── Habits ────────────────────────────────────────────────────────────

    async def _require_habit(self, db: AsyncSession, habit_id: int) -> Habit:
        habit = await db.get(Habit, habit_id)
        if habit is None:
            raise NotFoundError(resource="habit", resource_id=habit_id)
        return habit

    async def list_default_habits(self, db: AsyncSession) -> List[DefaultHabitResponse]:
        result = await db.execute(select(DefaultHabit).order_by(DefaultHabit.sort_order.asc()))
        return [DefaultHabitResponse.model_validate(h) for h in result.scalars().all()]

    async def list_habits(
        self, db: AsyncSession, person_id: int, active_only: bool = False
    ) -> List[HabitResponse]:
        query = select(Habit).where(Habit.person_id == person_id)
        if active_only:
            query = query.where(Habit.is_active.is_(True))
        query = query.order_by(Habit.sort_order.asc(), Habit.created_at.asc(), Habit.id.asc())
        result = await db.execute(query)
        return [HabitResponse.model_validate(h) for h in result.scalars().all()]

    async def create_habit(self, db: AsyncSession, person_id: int, data: HabitWrite) -> HabitResponse:
        name = _require_name(data)
        await person_service.require_person(db, person_id)

        habit = Habit(
            person_id=person_id,
            name=name,
            description=data.description or None,
            frequency=data.frequency or DEFAULT_FREQUENCY,
            target_count=data.target_count or 1,
            icon=data.icon or DEFAULT_HABIT_ICON,
            color=data.color or DEFAULT_HABIT_COLOR,
            sort_order=data.sort_order or 0,
        )
        db.add(habit)
        await db.flush()
        logger.info("Habit created: %d for person %d", habit.id, person_id)
        return HabitResponse.model_validate(habit)

    async def init_defaults(
        self, db: AsyncSession, person_id: int
    ) -> Union[List[HabitResponse], InitDefaultsSkipped]:
        """
        Copy every default_habits template to the person.

        Returns:
            The person's new habits, or InitDefaultsSkipped with the existing
            count when the person already has any habit.
        """
        await person_service.require_person(db, person_id)

        existing = await db.scalar(
            select(func.count(Habit.id)).where(Habit.person_id == person_id)
        )
        if existing:
            return InitDefaultsSkipped(count=existing)

        result = await db.execute(select(DefaultHabit).order_by(DefaultHabit.sort_order.asc()))
        db.add_all(
            Habit(
                person_id=person_id,
                name=template.name,
                description=template.description,
                icon=template.icon,
                color=template.color,
                sort_order=template.sort_order,
            )
            for template in result.scalars().all()
        )
        await db.flush()
        habits = await self.list_habits(db, person_id)
        logger.info("Initialized %d default habits for person %d", len(habits), person_id)
        return habits

    async def update_habit(self, db: AsyncSession, habit_id: int, data: HabitWrite) -> HabitResponse:
        """Full replace; is_active stays true unless explicitly false."""
        name = _require_name(data)
        habit = await self._require_habit(db, habit_id)

        habit.name = name
        habit.description = data.description or None
        habit.frequency = data.frequency or DEFAULT_FREQUENCY
        habit.target_count = data.target_count or 1
        habit.icon = data.icon or DEFAULT_HABIT_ICON
        habit.color = data.color or DEFAULT_HABIT_COLOR
        habit.is_active = data.is_active is not False
        habit.sort_order = data.sort_order or 0
        habit.updated_at = utcnow()
        await db.flush()
        return HabitResponse.model_validate(habit)

    async def delete_habit(self, db: AsyncSession, habit_id: int) -> None:
        habit = await self._require_habit(db, habit_id)
        await db.execute(delete(HabitLog).where(HabitLog.habit_id == habit_id))
        await db.delete(habit)
        await db.flush()
        logger.info("Habit deleted: %d", habit_id)

    # ── Check-ins ─────────────────────────────────────────────────────────

    async def _find_log(self, db: AsyncSession, habit_id: int, log_date: date) -> Optional[HabitLog]:
        result = await db.execute(
            select(HabitLog)
            .where(HabitLog.habit_id == habit_id, HabitLog.log_date == log_date)
            .order_by(HabitLog.id.asc())
            .limit(1)
        )
        return result.scalars().first()

    async def log(self, db: AsyncSession, habit_id: int, data: HabitLogWrite) -> HabitLogResponse:
        """
        Create or overwrite the check-in for a date.

        Existing row: only the fields present in the body are written
        (completed/count ignore an explicit null).
        New row: count defaults to 1 when completed, else 0.
        """
        habit = await self._require_habit(db, habit_id)
        log_date = data.log_date or utc_today()
        entry = await self._find_log(db, habit_id, log_date)

        if entry is not None:
            for field in data.model_fields_set - {"log_date"}:
                value = getattr(data, field)
                if field in ("completed", "count") and value is None:
                    continue
                setattr(entry, field, value)
            entry.updated_at = utcnow()
        else:
            completed = bool(data.completed)
            entry = HabitLog(
                habit_id=habit_id,
                person_id=habit.person_id,
                log_date=log_date,
                completed=completed,
                count=data.count or (1 if completed else 0),
                note=data.note or None,
                transcription=data.transcription or None,
                voice_url=data.voice_url or None,
            )
            db.add(entry)

        await db.flush()
        return HabitLogResponse.model_validate(entry)

    async def toggle(
        self, db: AsyncSession, habit_id: int, log_date: Optional[date] = None
    ) -> HabitLogResponse:
        """Flip completion for a date; count mirrors completed (1/0)."""
        habit = await self._require_habit(db, habit_id)
        log_date = log_date or utc_today()
        entry = await self._find_log(db, habit_id, log_date)

        if entry is not None:
            entry.completed = not entry.completed
            entry.count = 1 if entry.completed else 0
            entry.updated_at = utcnow()
        else:
            entry = HabitLog(
                habit_id=habit_id,
                person_id=habit.person_id,
                log_date=log_date,
                completed=True,
                count=1,
            )
            db.add(entry)

        await db.flush()
        return HabitLogResponse.model_validate(entry)

    async def add_voice_note(
        self,
        db: AsyncSession,
        habit_id: int,
        audio: bytes,
        log_date: Optional[date] = None,
        content_type: Optional[str] = None,
    ) -> HabitLogResponse:
        """
        Store a voice note for a check-in and append its transcription.

        Flow:
            1. Store audio at habit-notes/{habitId}_{date}_{ms}.ogg
            2. Transcribe; a failed transcription is logged and left empty
            3. Existing log: voice_url/transcription replaced, transcription
               appended to the note ("<note> <transcription>")
               New log: incomplete, count 0, note = transcription
        """
        habit = await self._require_habit(db, habit_id)
        storage_service.validate_size(audio)
        log_date = log_date or utc_today()

        key = habit_note_key(habit_id, log_date)
        await storage_service.put(key, audio)
        voice_url = f"/api/audio/{key}"

        transcription = ""
        try:
            transcription = await gemini_service.transcribe_audio(audio, content_type or "audio/ogg")
        except ExternalServiceError as e:
            logger.warning("Habit %d voice note transcription failed: %s", habit_id, e.message)

        entry = await self._find_log(db, habit_id, log_date)
        if entry is not None:
            entry.voice_url = voice_url
            entry.transcription = transcription
            entry.note = f"{entry.note or ''} {transcription}"
            entry.updated_at = utcnow()
        else:
            entry = HabitLog(
                habit_id=habit_id,
                person_id=habit.person_id,
                log_date=log_date,
                completed=False,
                count=0,
                voice_url=voice_url,
                transcription=transcription,
                note=transcription,
            )
            db.add(entry)

        await db.flush()
        return HabitLogResponse.model_validate(entry)

    # ── Views ─────────────────────────────────────────────────────────────

    async def list_logs(
        self,
        db: AsyncSession,
        person_id: int,
        log_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[HabitLogWithHabit]:
        """A person's check-ins for one date, or for a range when no date is given."""
        query = (
            select(HabitLog, Habit.name, Habit.icon, Habit.color)
            .join(Habit, Habit.id == HabitLog.habit_id)
            .where(HabitLog.person_id == person_id)
        )
        if log_date:
            query = query.where(HabitLog.log_date == log_date)
        else:
            if start_date:
                query = query.where(HabitLog.log_date >= start_date)
            if end_date:
                query = query.where(HabitLog.log_date <= end_date)
        query = query.order_by(HabitLog.log_date.desc(), Habit.sort_order.asc())

        result = await db.execute(query)
        return [
            HabitLogWithHabit(
                **HabitLogResponse.model_validate(entry).model_dump(),
                habit_name=name,
                habit_icon=icon,
                habit_color=color,
            )
            for entry, name, icon, color in result.all()
        ]

    async def today(
        self, db: AsyncSession, person_id: int, today: Optional[date] = None
    ) -> List[TodayHabit]:
        """Active habits of a person, each with today's log fields (null when absent)."""
        today = today or utc_today()
        result = await db.execute(
            select(Habit, HabitLog)
            .outerjoin(
                HabitLog,
                and_(HabitLog.habit_id == Habit.id, HabitLog.log_date == today),
            )
            .where(Habit.person_id == person_id, Habit.is_active.is_(True))
            .order_by(Habit.sort_order.asc(), Habit.id.asc())
        )
        items = []
        for habit, entry in result.all():
            item = TodayHabit.model_validate(habit)
            if entry is not None:
                item.log_id = entry.id
                item.completed = entry.completed
                item.log_count = entry.count
                item.note = entry.note
                item.transcription = entry.transcription
            items.append(item)
        return items

    async def _completed_dates(self, db: AsyncSession, habit_id: int) -> List[date]:
        result = await db.execute(
            select(HabitLog.log_date)
            .where(HabitLog.habit_id == habit_id, HabitLog.completed.is_(True))
            .order_by(HabitLog.log_date.desc())
            .limit(STREAK_WINDOW_DAYS)
        )
        return list(result.scalars().all())

    async def stats(
        self,
        db: AsyncSession,
        person_id: int,
        days: int = 30,
        today: Optional[date] = None,
    ) -> List[HabitStat]:
        """
        Per active habit: completions and logs since `days` ago, plus the
        current streak over the last 60 completed dates.
        """
        today = today or utc_today()
        since = today - timedelta(days=days)

        completed = func.sum(case((HabitLog.completed.is_(True), 1), else_=0))
        result = await db.execute(
            select(Habit, func.count(HabitLog.id), completed)
            .outerjoin(
                HabitLog,
                and_(HabitLog.habit_id == Habit.id, HabitLog.log_date >= since),
            )
            .where(Habit.person_id == person_id, Habit.is_active.is_(True))
            .group_by(Habit.id)
            .order_by(Habit.sort_order.asc(), Habit.id.asc())
        )
        rows: List[Tuple[Habit, int, Optional[int]]] = list(result.all())

        stats = []
        for habit, total_logs, completed_count in rows:
            streak = compute_streak(await self._completed_dates(db, habit.id), today)
            stats.append(
                HabitStat(
                    habit_id=habit.id,
                    name=habit.name,
                    icon=habit.icon,
                    color=habit.color,
                    completed_count=completed_count or 0,
                    total_logs=total_logs,
                    total_days=days,
                    current_streak=streak,
                )
            )
        return stats

    async def family_summary(
        self, db: AsyncSession, today: Optional[date] = None
    ) -> List[FamilyMemberSummary]:
        """Every person with today's completed / total active habits."""
        today = today or utc_today()

        totals = dict(
            (await db.execute(
                select(Habit.person_id, func.count(Habit.id))
                .where(Habit.is_active.is_(True))
                .group_by(Habit.person_id)
            )).all()
        )
        done = dict(
            (await db.execute(
                select(Habit.person_id, func.count(HabitLog.id))
                .join(
                    HabitLog,
                    and_(
                        HabitLog.habit_id == Habit.id,
                        HabitLog.log_date == today,
                        HabitLog.completed.is_(True),
                    ),
                )
                .where(Habit.is_active.is_(True))
                .group_by(Habit.person_id)
            )).all()
        )

        people = await db.execute(select(Person).order_by(Person.name.asc()))
        summary = []
        for person in people.scalars().all():
            total = totals.get(person.id, 0)
            completed = done.get(person.id, 0)
            summary.append(
                FamilyMemberSummary(
                    id=person.id,
                    name=person.name,
                    relationship=person.relationship,
                    notes=person.notes,
                    avatar_url=person.avatar_url,
                    created_at=person.created_at,
                    updated_at=person.updated_at,
                    total_habits=total,
                    completed_habits=completed,
                    # Round half up
                    completion_percentage=int(completed * 100 / total + 0.5) if total else 0,
                )
            )
        return summary


# ── Singleton Instance ────────────────────────────────────────────────────
habit_service = HabitService()
