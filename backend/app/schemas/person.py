"""
DLE Backend - Person Schemas
==============================

What:  Request/response models for /api/people.

`name` is Optional in the request model: a missing name must produce
400 {"error": "Name is required"}, which PersonService raises, rather
than FastAPI's generic validation message.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class PersonWrite(BaseModel):
    """Body of POST /api/people and PUT /api/people/{id} (full replace)."""
    name: Optional[str] = Field(default=None, description="Display name (required)")
    relationship: Optional[str] = Field(default=None, description="e.g. mother, doctor")
    notes: Optional[str] = Field(default=None, description="Free-text notes about the person")
    avatar_url: Optional[str] = Field(default=None)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PersonResponse(BaseModel):
    id: int
    name: str
    relationship: Optional[str] = None
    notes: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PersonNoteItem(BaseModel):
    """A note on a person's timeline, with the person's role in it."""
    id: int
    title: Optional[str] = None
    content: str
    category: str
    importance: str
    event_date: Optional[date] = None
    event_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    role: Optional[str] = None

    model_config = {"from_attributes": True}


class PersonDetailResponse(BaseModel):
    """
    GET /api/people/{id}.

    `notes` is the person's note timeline here (event_date DESC, created_at
    DESC); the person's own free-text notes are returned as `person_notes`.
    """
    id: int
    name: str
    relationship: Optional[str] = None
    person_notes: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    notes: List[PersonNoteItem] = Field(default_factory=list)
