"""
DLE Backend - Habit Tracking Schemas
======================================

What:  Request/response models for habits, daily check-ins and the stats views.

Partial updates on POST /api/habits/{id}/log:
    Only fields present in the body are written to an existing log, so
    {"note": null} clears the note while omitting "note" keeps it. The
    service reads `model_fields_set` to tell the two apart.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class HabitWrite(BaseModel):
    """
    Body of POST /api/people/{id}/habits and PUT /api/habits/{id}.

    Missing values fall back to the column defaults (daily, 1, ✓, #3b82f6,
    active, sort 0). is_active is ignored on create.
    """
    name: Optional[str] = Field(default=None, description="Habit name (required)")
    description: Optional[str] = None
    frequency: Optional[str] = None
    target_count: Optional[int] = Field(default=None, ge=1)
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class HabitLogWrite(BaseModel):
    """Body of POST /api/habits/{id}/log. `date` defaults to today (UTC)."""
    log_date: Optional[date] = Field(default=None, alias="date")
    completed: Optional[bool] = None
    count: Optional[int] = Field(default=None, ge=0)
    note: Optional[str] = None
    transcription: Optional[str] = None
    voice_url: Optional[str] = None

    model_config = {"populate_by_name": True}


class HabitToggle(BaseModel):
    """Body of POST /api/habits/{id}/toggle. `date` defaults to today (UTC)."""
    log_date: Optional[date] = Field(default=None, alias="date")

    model_config = {"populate_by_name": True}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class HabitResponse(BaseModel):
    id: int
    person_id: int
    name: str
    description: Optional[str] = None
    frequency: str
    target_count: int
    icon: str
    color: str
    is_active: bool
    sort_order: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DefaultHabitResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    icon: str
    color: str
    sort_order: int

    model_config = {"from_attributes": True}


class InitDefaultsSkipped(BaseModel):
    """Returned (200) by init-defaults when the person already has habits."""
    message: str = "Person already has habits"
    count: int


class HabitLogResponse(BaseModel):
    id: int
    habit_id: int
    person_id: int
    log_date: date
    completed: bool
    count: int
    note: Optional[str] = None
    transcription: Optional[str] = None
    voice_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class HabitLogWithHabit(HabitLogResponse):
    """A log row joined with its habit's display fields."""
    habit_name: str
    habit_icon: str
    habit_color: str


class TodayHabit(HabitResponse):
    """An active habit with today's check-in state (log fields null when absent)."""
    log_id: Optional[int] = None
    completed: Optional[bool] = None
    log_count: Optional[int] = None
    note: Optional[str] = None
    transcription: Optional[str] = None


class HabitStat(BaseModel):
    habit_id: int
    name: str
    icon: str
    color: str
    completed_count: int
    total_logs: int
    total_days: int
    current_streak: int


class FamilyMemberSummary(BaseModel):
    """A person with today's active-habit completion."""
    id: int
    name: str
    relationship: Optional[str] = None
    notes: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    total_habits: int
    completed_habits: int
    completion_percentage: int
