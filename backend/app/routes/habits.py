"""
DLE Backend - Habit Tracker Route Handlers
============================================

What:  Per-person habits, daily check-ins (log, toggle, voice note), and the
       read models built on them: today's checklist, per-habit stats and the
       family summary.
How:   Thin handlers over HabitService. Dates are YYYY-MM-DD and default to
       today in UTC.
Who:   The frontend Habits page and the family dashboard.

Route map:
    GET    /api/default-habits
    GET    /api/people/{id}/habits?active=true
    POST   /api/people/{id}/habits
    POST   /api/people/{id}/habits/init-defaults
    GET    /api/people/{id}/habits/today
    GET    /api/people/{id}/habit-logs?date= | ?start_date=&end_date=
    GET    /api/people/{id}/habit-stats?days=30
    GET    /api/family-habits-summary
    PUT    /api/habits/{id}
    DELETE /api/habits/{id}
    POST   /api/habits/{id}/log
    POST   /api/habits/{id}/toggle
    POST   /api/habits/{id}/voice-note      (multipart "audio")
"""

from datetime import date
from typing import List, Optional, Union

from fastapi import APIRouter, Body, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse, SuccessResponse
from app.schemas.habit import (
    DefaultHabitResponse,
    FamilyMemberSummary,
    HabitLogResponse,
    HabitLogWithHabit,
    HabitLogWrite,
    HabitResponse,
    HabitStat,
    HabitToggle,
    HabitWrite,
    InitDefaultsSkipped,
    TodayHabit,
)
from app.services.habit_service import habit_service

router = APIRouter(prefix="/api", tags=["Habits"])

_HABIT_NOT_FOUND = {404: {"description": "Habit not found", "model": ErrorResponse}}
_PERSON_NOT_FOUND = {404: {"description": "Person not found", "model": ErrorResponse}}


@router.get(
    "/default-habits",
    response_model=List[DefaultHabitResponse],
    summary="List the default habit templates",
)
async def list_default_habits(db: AsyncSession = Depends(get_db_session)) -> List[DefaultHabitResponse]:
    return await habit_service.list_default_habits(db)


# ── Person-scoped ─────────────────────────────────────────────────────────


@router.get(
    "/people/{person_id}/habits",
    response_model=List[HabitResponse],
    summary="List a person's habits",
)
async def list_habits(
    person_id: int,
    active: bool = Query(default=False, description="Only active habits"),
    db: AsyncSession = Depends(get_db_session),
) -> List[HabitResponse]:
    return await habit_service.list_habits(db, person_id, active_only=active)


@router.post(
    "/people/{person_id}/habits",
    response_model=HabitResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Name missing", "model": ErrorResponse}, **_PERSON_NOT_FOUND},
    summary="Create a habit for a person",
)
async def create_habit(
    person_id: int,
    data: HabitWrite,
    db: AsyncSession = Depends(get_db_session),
) -> HabitResponse:
    return await habit_service.create_habit(db, person_id, data)


@router.post(
    "/people/{person_id}/habits/init-defaults",
    response_model=Union[List[HabitResponse], InitDefaultsSkipped],
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"description": "Person already has habits; nothing copied", "model": InitDefaultsSkipped},
        **_PERSON_NOT_FOUND,
    },
    summary="Copy the default habits to a person",
)
async def init_default_habits(
    person_id: int,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> Union[List[HabitResponse], InitDefaultsSkipped]:
    """
    Copy every default habit template to the person.

    A person who already has any habit is left untouched: the response is
    200 with the existing count instead of 201 with the new habits.
    """
    result = await habit_service.init_defaults(db, person_id)
    if isinstance(result, InitDefaultsSkipped):
        response.status_code = status.HTTP_200_OK
    return result


@router.get(
    "/people/{person_id}/habits/today",
    response_model=List[TodayHabit],
    summary="Active habits with today's check-in",
)
async def today_habits(person_id: int, db: AsyncSession = Depends(get_db_session)) -> List[TodayHabit]:
    return await habit_service.today(db, person_id)


@router.get(
    "/people/{person_id}/habit-logs",
    response_model=List[HabitLogWithHabit],
    summary="A person's habit logs for a date or date range",
)
async def list_habit_logs(
    person_id: int,
    log_date: Optional[date] = Query(default=None, alias="date", description="Single day; overrides the range"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> List[HabitLogWithHabit]:
    return await habit_service.list_logs(
        db, person_id, log_date=log_date, start_date=start_date, end_date=end_date
    )


@router.get(
    "/people/{person_id}/habit-stats",
    response_model=List[HabitStat],
    summary="Per-habit completion stats and current streak",
)
async def habit_stats(
    person_id: int,
    days: int = Query(default=30, ge=1, le=366, description="Look-back window in days"),
    db: AsyncSession = Depends(get_db_session),
) -> List[HabitStat]:
    return await habit_service.stats(db, person_id, days=days)


@router.get(
    "/family-habits-summary",
    response_model=List[FamilyMemberSummary],
    summary="Today's completion per person",
)
async def family_habits_summary(db: AsyncSession = Depends(get_db_session)) -> List[FamilyMemberSummary]:
    return await habit_service.family_summary(db)


# ── Habit-scoped ──────────────────────────────────────────────────────────


@router.put(
    "/habits/{habit_id}",
    response_model=HabitResponse,
    responses={400: {"description": "Name missing", "model": ErrorResponse}, **_HABIT_NOT_FOUND},
    summary="Replace a habit's fields",
)
async def update_habit(
    habit_id: int,
    data: HabitWrite,
    db: AsyncSession = Depends(get_db_session),
) -> HabitResponse:
    return await habit_service.update_habit(db, habit_id, data)


@router.delete(
    "/habits/{habit_id}",
    response_model=SuccessResponse,
    responses=_HABIT_NOT_FOUND,
    summary="Delete a habit and its logs",
)
async def delete_habit(habit_id: int, db: AsyncSession = Depends(get_db_session)) -> SuccessResponse:
    await habit_service.delete_habit(db, habit_id)
    return SuccessResponse()


@router.post(
    "/habits/{habit_id}/log",
    response_model=HabitLogResponse,
    responses=_HABIT_NOT_FOUND,
    summary="Create or overwrite the check-in for a date",
)
async def log_habit(
    habit_id: int,
    data: HabitLogWrite,
    db: AsyncSession = Depends(get_db_session),
) -> HabitLogResponse:
    """
    Upsert keyed on (habit, date). Only the fields present in the body are
    written; an existing log keeps the others.

    Example body:
        {"date": "2024-06-10", "completed": true, "count": 8, "note": "8 glasses"}
    """
    return await habit_service.log(db, habit_id, data)


@router.post(
    "/habits/{habit_id}/toggle",
    response_model=HabitLogResponse,
    responses=_HABIT_NOT_FOUND,
    summary="Flip completion for a date",
)
async def toggle_habit(
    habit_id: int,
    data: Optional[HabitToggle] = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> HabitLogResponse:
    log_date = data.log_date if data is not None else None
    return await habit_service.toggle(db, habit_id, log_date=log_date)


@router.post(
    "/habits/{habit_id}/voice-note",
    response_model=HabitLogResponse,
    responses={
        400: {"description": "Empty or oversized audio", "model": ErrorResponse},
        **_HABIT_NOT_FOUND,
    },
    summary="Attach a transcribed voice note to a check-in",
)
async def habit_voice_note(
    habit_id: int,
    audio: UploadFile = File(..., description="Recorded audio (ogg/webm)"),
    log_date: Optional[date] = Form(default=None, alias="date"),
    db: AsyncSession = Depends(get_db_session),
) -> HabitLogResponse:
    """
    Store the recording under habit-notes/, transcribe it with Gemini and
    attach both to the day's log (created incomplete when absent).

    A failed transcription does not fail the request: the audio is kept
    and the transcription is empty.
    """
    content = await audio.read()
    return await habit_service.add_voice_note(
        db,
        habit_id,
        content,
        log_date=log_date,
        content_type=audio.content_type,
    )
