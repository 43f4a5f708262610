"""
DLE Backend - Note Service
============================

What:  Notes with their people/tag associations and photo attachments.
How:   Plain SQLAlchemy statements on the request session; relations for a
       page of notes are loaded with one query per relation type.
Who:   Routes in app.routes.notes.

Write Workflow (POST /api/notes, PUT /api/notes/{id}):
    ┌──────────┐    ┌────────────┐    ┌───────────────┐    ┌──────────────┐
    │ Validate │───▶│ Insert /   │───▶│ Replace links │───▶│ Reload with  │
    │ content  │    │ update row │    │ (delete all,  │    │ people, tags │
    └──────────┘    └────────────┘    │  reinsert)    │    │ and photos   │
                                      └───────────────┘    └──────────────┘

    All of it runs in the request's session, committed once by
    get_db_session, so readers never observe a half-replaced link set.

Delete Workflow (DELETE /api/notes/{id}):
    1. Delete every photo blob from the object store. A failure is logged
       and skipped; the blob becomes an orphan.
    2. Delete note_photos, note_people and note_tags rows, then the note.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import FileStorageError, NotFoundError, ValidationError
from app.models.event import Event
from app.models.mixins import utcnow
from app.models.note import (
    DEFAULT_CATEGORY,
    DEFAULT_IMPORTANCE,
    IMPORTANCE_LEVELS,
    Note,
    NotePerson,
    NotePhoto,
    NoteTag,
)
from app.models.person import Person
from app.models.tag import Tag
from app.schemas.note import (
    NotePersonLink,
    NotePersonResponse,
    NoteResponse,
    NoteWrite,
    PhotoResponse,
)
from app.schemas.tag import TagResponse
from app.services.storage_service import photo_key, storage_service

logger = logging.getLogger(__name__)


def _importance(value: Optional[str]) -> str:
    if not value:
        return DEFAULT_IMPORTANCE
    if value not in IMPORTANCE_LEVELS:
        raise ValidationError(
            message=f"Importance must be one of: {', '.join(IMPORTANCE_LEVELS)}",
            field="importance",
        )
    return value


def _require_content(data: NoteWrite) -> str:
    if not data.content:
        raise ValidationError(message="Content is required", field="content")
    return data.content


class NoteService:
    """
    Business logic for notes and photos.

    Error Handling Strategy:
        Missing rows become NotFoundError; invalid input becomes
        ValidationError. Database errors propagate and are mapped to a
        generic 500 by the global handler after the session rolls back.
    """

    # ── Loading ───────────────────────────────────────────────────────────

    async def _require_note(self, db: AsyncSession, note_id: int) -> Note:
        note = await db.get(Note, note_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=note_id)
        return note

    async def _with_relations(self, db: AsyncSession, notes: List[Note]) -> List[NoteResponse]:
        """
        Attach people (with roles), tags and photos to each note.

        Three queries regardless of the number of notes:
            people ⋈ note_people, tags ⋈ note_tags, note_photos
        """
        if not notes:
            return []
        ids = [n.id for n in notes]

        people: Dict[int, List[NotePersonResponse]] = defaultdict(list)
        result = await db.execute(
            select(NotePerson.note_id, NotePerson.role, Person)
            .join(Person, Person.id == NotePerson.person_id)
            .where(NotePerson.note_id.in_(ids))
            .order_by(Person.name.asc())
        )
        for note_id, role, person in result.all():
            item = NotePersonResponse.model_validate(person)
            item.role = role
            people[note_id].append(item)

        tags: Dict[int, List[TagResponse]] = defaultdict(list)
        result = await db.execute(
            select(NoteTag.note_id, Tag)
            .join(Tag, Tag.id == NoteTag.tag_id)
            .where(NoteTag.note_id.in_(ids))
            .order_by(Tag.name.asc())
        )
        for note_id, tag in result.all():
            tags[note_id].append(TagResponse.model_validate(tag))

        photos: Dict[int, List[PhotoResponse]] = defaultdict(list)
        result = await db.execute(
            select(NotePhoto).where(NotePhoto.note_id.in_(ids)).order_by(NotePhoto.id.asc())
        )
        for photo in result.scalars().all():
            photos[photo.note_id].append(PhotoResponse.model_validate(photo))

        responses = []
        for note in notes:
            response = NoteResponse.model_validate(note)
            response.people = people[note.id]
            response.tags = tags[note.id]
            response.photos = photos[note.id]
            responses.append(response)
        return responses

    async def list_notes(
        self,
        db: AsyncSession,
        category: Optional[str] = None,
        person_id: Optional[int] = None,
        tag_id: Optional[int] = None,
        search: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        importance: Optional[str] = None,
    ) -> List[NoteResponse]:
        """
        Filtered note timeline, newest event first.

        Person and tag filters use IN (subquery) instead of joins so a note
        linked to several people is returned once without DISTINCT.
        """
        query = select(Note)
        if category:
            query = query.where(Note.category == category)
        if person_id is not None:
            query = query.where(
                Note.id.in_(select(NotePerson.note_id).where(NotePerson.person_id == person_id))
            )
        if tag_id is not None:
            query = query.where(
                Note.id.in_(select(NoteTag.note_id).where(NoteTag.tag_id == tag_id))
            )
        if search:
            pattern = f"%{search}%"
            query = query.where(Note.title.like(pattern) | Note.content.like(pattern))
        if start_date:
            query = query.where(Note.event_date >= start_date)
        if end_date:
            query = query.where(Note.event_date <= end_date)
        if importance:
            query = query.where(Note.importance == importance)

        query = query.order_by(Note.event_date.desc(), Note.created_at.desc())
        result = await db.execute(query)
        return await self._with_relations(db, list(result.scalars().all()))

    async def get_note(self, db: AsyncSession, note_id: int) -> NoteResponse:
        note = await self._require_note(db, note_id)
        return (await self._with_relations(db, [note]))[0]

    # ── Writing ───────────────────────────────────────────────────────────

    async def _replace_links(
        self,
        db: AsyncSession,
        note_id: int,
        people: Optional[List[NotePersonLink]],
        tag_ids: Optional[List[int]],
    ) -> None:
        """
        Replace the note's person and tag links with exactly the given sets.

        Duplicate ids collapse to one link (the last role wins). Unknown
        person or tag ids are rejected with 400 before anything is deleted.
        """
        roles: Dict[int, Optional[str]] = {}
        for link in people or []:
            roles[link.id] = link.role
        tags = list(dict.fromkeys(tag_ids or []))

        if roles:
            result = await db.execute(select(Person.id).where(Person.id.in_(list(roles))))
            missing = set(roles) - set(result.scalars().all())
            if missing:
                raise ValidationError(
                    message=f"Unknown person id: {min(missing)}",
                    field="people",
                    context={"missing": sorted(missing)},
                )
        if tags:
            result = await db.execute(select(Tag.id).where(Tag.id.in_(tags)))
            missing = set(tags) - set(result.scalars().all())
            if missing:
                raise ValidationError(
                    message=f"Unknown tag id: {min(missing)}",
                    field="tags",
                    context={"missing": sorted(missing)},
                )

        await db.execute(delete(NotePerson).where(NotePerson.note_id == note_id))
        await db.execute(delete(NoteTag).where(NoteTag.note_id == note_id))
        db.add_all(NotePerson(note_id=note_id, person_id=pid, role=role) for pid, role in roles.items())
        db.add_all(NoteTag(note_id=note_id, tag_id=tid) for tid in tags)
        await db.flush()

    async def create_note(self, db: AsyncSession, data: NoteWrite) -> NoteResponse:
        content = _require_content(data)
        importance = _importance(data.importance)
        if data.event_id is not None and await db.get(Event, data.event_id) is None:
            raise NotFoundError(resource="event", resource_id=data.event_id)

        note = Note(
            title=data.title or None,
            content=content,
            category=data.category or DEFAULT_CATEGORY,
            importance=importance,
            event_date=data.event_date,
            event_id=data.event_id,
        )
        db.add(note)
        await db.flush()

        await self._replace_links(db, note.id, data.people, data.tags)
        logger.info(
            "Note created: %d (%d people, %d tags)",
            note.id,
            len(data.people or []),
            len(data.tags or []),
        )
        return await self.get_note(db, note.id)

    async def update_note(self, db: AsyncSession, note_id: int, data: NoteWrite) -> NoteResponse:
        """
        Full replace of the note's columns and association sets.

        event_id is not editable; it is set once when a note is created
        from an ingested voice event.
        """
        content = _require_content(data)
        importance = _importance(data.importance)
        note = await self._require_note(db, note_id)

        note.title = data.title or None
        note.content = content
        note.category = data.category or DEFAULT_CATEGORY
        note.importance = importance
        note.event_date = data.event_date
        note.updated_at = utcnow()
        await db.flush()

        await self._replace_links(db, note.id, data.people, data.tags)
        return await self.get_note(db, note.id)

    async def delete_note(self, db: AsyncSession, note_id: int) -> int:
        """
        Delete a note, its photos (blobs and rows) and its links.

        Returns:
            Number of photos removed.
        """
        note = await self._require_note(db, note_id)

        result = await db.execute(select(NotePhoto).where(NotePhoto.note_id == note_id))
        photos = list(result.scalars().all())
        for photo in photos:
            await self._delete_blob(photo)

        await db.execute(delete(NotePhoto).where(NotePhoto.note_id == note_id))
        await db.execute(delete(NotePerson).where(NotePerson.note_id == note_id))
        await db.execute(delete(NoteTag).where(NoteTag.note_id == note_id))
        await db.delete(note)
        await db.flush()
        logger.info("Note deleted: %d (%d photos)", note_id, len(photos))
        return len(photos)

    # ── Photos ────────────────────────────────────────────────────────────

    async def _delete_blob(self, photo: NotePhoto) -> None:
        try:
            await storage_service.delete(photo.storage_key)
        except FileStorageError as e:
            logger.warning(
                "Could not delete photo blob %s (photo %d), leaving orphan: %s",
                photo.storage_key,
                photo.id,
                e.message,
            )

    async def add_photo(
        self,
        db: AsyncSession,
        note_id: int,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> PhotoResponse:
        """
        Store an uploaded photo and record it against the note.

        The blob is written before the row; if the row insert fails the
        blob is left behind as an orphan.
        """
        await self._require_note(db, note_id)
        storage_service.validate_size(content)

        key = photo_key(note_id, filename)
        await storage_service.put(key, content)

        photo = NotePhoto(
            note_id=note_id,
            storage_key=key,
            caption=caption or None,
            file_name=filename,
            file_size=len(content),
            mime_type=content_type or storage_service.guess_content_type(key, "image/jpeg"),
        )
        db.add(photo)
        await db.flush()
        logger.info("Photo %d attached to note %d: %s", photo.id, note_id, key)
        return PhotoResponse.model_validate(photo)

    async def delete_photo(self, db: AsyncSession, photo_id: int) -> None:
        photo = await db.get(NotePhoto, photo_id)
        if photo is None:
            raise NotFoundError(resource="photo", resource_id=photo_id)
        await self._delete_blob(photo)
        await db.delete(photo)
        await db.flush()


# ── Singleton Instance ────────────────────────────────────────────────────
note_service = NoteService()
