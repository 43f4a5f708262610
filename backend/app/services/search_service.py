"""
DLE Backend - Search and Category Service
===========================================

What:  Global substring search over notes and people, and note counts per
       category.
Who:   Routes in app.routes.search.

Search:
    q shorter than 2 characters → 400
    notes:  title LIKE %q% OR content LIKE %q%, newest event first, max 50
    people: name LIKE %q% OR notes LIKE %q%, by name, max 20
"""

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationError
from app.models.note import Note
from app.models.person import Person
from app.schemas.note import CategoryCount, NoteSummary, SearchResponse
from app.schemas.person import PersonResponse

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
NOTE_RESULT_LIMIT = 50
PEOPLE_RESULT_LIMIT = 20

# Listed with a zero count when no note uses them yet
DEFAULT_CATEGORIES = (
    "Health",
    "Medical",
    "Prescription",
    "Appointment",
    "Personal",
    "Family",
    "Work",
    "Financial",
    "General",
    "Other",
)


class SearchService:

    async def search(self, db: AsyncSession, q: str) -> SearchResponse:
        if not q or len(q) < MIN_QUERY_LENGTH:
            raise ValidationError(
                message=f"Query must be at least {MIN_QUERY_LENGTH} characters",
                field="q",
            )
        pattern = f"%{q}%"

        notes = await db.execute(
            select(Note)
            .where(Note.title.like(pattern) | Note.content.like(pattern))
            .order_by(Note.event_date.desc(), Note.created_at.desc())
            .limit(NOTE_RESULT_LIMIT)
        )
        people = await db.execute(
            select(Person)
            .where(Person.name.like(pattern) | Person.notes.like(pattern))
            .order_by(Person.name.asc())
            .limit(PEOPLE_RESULT_LIMIT)
        )
        response = SearchResponse(
            notes=[NoteSummary.model_validate(n) for n in notes.scalars().all()],
            people=[PersonResponse.model_validate(p) for p in people.scalars().all()],
        )
        logger.debug(
            "Search %r: %d notes, %d people", q, len(response.notes), len(response.people)
        )
        return response

    async def list_categories(self, db: AsyncSession) -> List[CategoryCount]:
        """Categories in use (by count, descending) followed by unused defaults."""
        count = func.count(Note.id)
        result = await db.execute(
            select(Note.category, count).group_by(Note.category).order_by(count.desc())
        )
        categories = [CategoryCount(category=c, count=n) for c, n in result.all()]
        used = {c.category for c in categories}
        categories.extend(
            CategoryCount(category=c, count=0) for c in DEFAULT_CATEGORIES if c not in used
        )
        return categories


# ── Singleton Instance ────────────────────────────────────────────────────
search_service = SearchService()
