"""
DLE Backend - Note, Photo and Search Schemas
==============================================

What:  Pydantic models defining the API contract for notes, their photos,
       global search and category counts.
How:   FastAPI validates request bodies against the *Write models and
       serializes responses through the *Response models.
Who:   Routes in app.routes.notes and app.routes.search; NoteService builds
       the response models.

Association payloads:
    people: [{"id": 3, "role": "doctor"}, {"id": 5}]
    tags:   [1, 4]

    Both lists fully replace the existing links on create and update. An
    omitted list is treated as empty.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.person import PersonResponse
from app.schemas.tag import TagResponse


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NotePersonLink(BaseModel):
    id: int = Field(description="Person id")
    role: Optional[str] = Field(default=None, description="The person's role in this note")


class NoteWrite(BaseModel):
    """
    Body of POST /api/notes and PUT /api/notes/{id}.

    Defaults applied by NoteService when a value is missing or empty:
        category   → "General"
        importance → "Low"
    """
    title: Optional[str] = None
    content: Optional[str] = Field(default=None, description="Note body (required)")
    category: Optional[str] = None
    importance: Optional[str] = Field(default=None, description="Low, Medium or High")
    event_date: Optional[date] = Field(default=None, description="Day the note is about")
    event_id: Optional[int] = Field(
        default=None,
        description="Source voice event; only honored on create",
    )
    people: Optional[List[NotePersonLink]] = None
    tags: Optional[List[int]] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class PhotoResponse(BaseModel):
    """
    A photo attached to a note.

    photo_url is derived from storage_key ("/api/photo/{storage_key}") and
    points at the proxy route, never at the storage medium.
    """
    id: int
    note_id: int
    storage_key: str
    photo_url: str
    caption: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotePersonResponse(PersonResponse):
    """A linked person, with the role recorded on the link."""
    role: Optional[str] = None


class NoteSummary(BaseModel):
    """Note columns only, without associations (search results)."""
    id: int
    title: Optional[str] = None
    content: str
    category: str
    importance: str
    event_date: Optional[date] = None
    event_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class NoteResponse(NoteSummary):
    """A note with its people, tags and photos."""
    people: List[NotePersonResponse] = Field(default_factory=list)
    tags: List[TagResponse] = Field(default_factory=list)
    photos: List[PhotoResponse] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """GET /api/search: up to 50 notes and 20 people."""
    notes: List[NoteSummary]
    people: List[PersonResponse]


class CategoryCount(BaseModel):
    category: str
    count: int
