"""
DLE Backend - Person Service
==============================

What:  CRUD for people plus the person's note timeline.
Who:   Routes in app.routes.people; HabitService uses require_person().

Delete Cascade (explicit, in one request transaction):
    habit_logs (person's rows and rows of the person's habits)
    → habits → note_people → people
"""

import logging
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError, ValidationError
from app.models.habit import Habit, HabitLog
from app.models.mixins import utcnow
from app.models.note import Note, NotePerson
from app.models.person import Person
from app.schemas.person import (
    PersonDetailResponse,
    PersonNoteItem,
    PersonResponse,
    PersonWrite,
)

logger = logging.getLogger(__name__)


def _require_name(data: PersonWrite) -> str:
    if not data.name or not data.name.strip():
        raise ValidationError(message="Name is required", field="name")
    return data.name


class PersonService:
    """Stateless; receives the request's session on every call."""

    async def require_person(self, db: AsyncSession, person_id: int) -> Person:
        person = await db.get(Person, person_id)
        if person is None:
            raise NotFoundError(resource="person", resource_id=person_id)
        return person

    async def list_people(self, db: AsyncSession) -> List[PersonResponse]:
        result = await db.execute(select(Person).order_by(Person.name.asc()))
        return [PersonResponse.model_validate(p) for p in result.scalars().all()]

    async def get_person(self, db: AsyncSession, person_id: int) -> PersonDetailResponse:
        """
        A person with every note they are linked to.

        Query plan:
            SELECT notes.*, note_people.role FROM notes
            JOIN note_people ON notes.id = note_people.note_id
            WHERE note_people.person_id = :id
            ORDER BY notes.event_date DESC, notes.created_at DESC
        """
        person = await self.require_person(db, person_id)

        result = await db.execute(
            select(Note, NotePerson.role)
            .join(NotePerson, NotePerson.note_id == Note.id)
            .where(NotePerson.person_id == person_id)
            .order_by(Note.event_date.desc(), Note.created_at.desc())
        )
        notes = []
        for note, role in result.all():
            item = PersonNoteItem.model_validate(note)
            item.role = role
            notes.append(item)

        return PersonDetailResponse(
            id=person.id,
            name=person.name,
            relationship=person.relationship,
            person_notes=person.notes,
            avatar_url=person.avatar_url,
            created_at=person.created_at,
            updated_at=person.updated_at,
            notes=notes,
        )

    async def create_person(self, db: AsyncSession, data: PersonWrite) -> PersonResponse:
        person = Person(
            name=_require_name(data),
            relationship=data.relationship or None,
            notes=data.notes or None,
            avatar_url=data.avatar_url or None,
        )
        db.add(person)
        await db.flush()
        logger.info("Person created: %d", person.id)
        return PersonResponse.model_validate(person)

    async def update_person(
        self, db: AsyncSession, person_id: int, data: PersonWrite
    ) -> PersonResponse:
        """Full replace of the editable columns; empty strings are stored as NULL."""
        name = _require_name(data)
        person = await self.require_person(db, person_id)

        person.name = name
        person.relationship = data.relationship or None
        person.notes = data.notes or None
        person.avatar_url = data.avatar_url or None
        person.updated_at = utcnow()
        await db.flush()
        return PersonResponse.model_validate(person)

    async def delete_person(self, db: AsyncSession, person_id: int) -> None:
        person = await self.require_person(db, person_id)

        habit_ids = select(Habit.id).where(Habit.person_id == person_id)
        await db.execute(delete(HabitLog).where(HabitLog.habit_id.in_(habit_ids)))
        await db.execute(delete(HabitLog).where(HabitLog.person_id == person_id))
        await db.execute(delete(Habit).where(Habit.person_id == person_id))
        await db.execute(delete(NotePerson).where(NotePerson.person_id == person_id))
        await db.delete(person)
        await db.flush()
        logger.info("Person deleted: %d (habits, logs and note links removed)", person_id)


# ── Singleton Instance ────────────────────────────────────────────────────
person_service = PersonService()
