"""
DLE Backend - Tag Service
===========================

What:  CRUD for tags. Names are unique: a duplicate on create or rename is a
       409 Conflict ("Tag already exists").
How:   A lookup by name catches the common case; the unique constraint's
       IntegrityError covers two requests racing for the same name.
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.note import NoteTag
from app.models.tag import DEFAULT_TAG_COLOR, Tag
from app.schemas.tag import TagResponse, TagWrite

logger = logging.getLogger(__name__)


class TagService:

    async def _name_taken(self, db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
        query = select(Tag.id).where(Tag.name == name)
        if exclude_id is not None:
            query = query.where(Tag.id != exclude_id)
        result = await db.execute(query)
        return result.first() is not None

    async def _flush_unique(self, db: AsyncSession, name: str) -> None:
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(message="Tag already exists", context={"name": name})

    async def list_tags(self, db: AsyncSession) -> List[TagResponse]:
        result = await db.execute(select(Tag).order_by(Tag.name.asc()))
        return [TagResponse.model_validate(t) for t in result.scalars().all()]

    async def create_tag(self, db: AsyncSession, data: TagWrite) -> TagResponse:
        if not data.name:
            raise ValidationError(message="Name is required", field="name")
        if await self._name_taken(db, data.name):
            raise ConflictError(message="Tag already exists", context={"name": data.name})

        tag = Tag(name=data.name, color=data.color or DEFAULT_TAG_COLOR)
        db.add(tag)
        await self._flush_unique(db, data.name)
        logger.info("Tag created: %d (%s)", tag.id, tag.name)
        return TagResponse.model_validate(tag)

    async def update_tag(self, db: AsyncSession, tag_id: int, data: TagWrite) -> TagResponse:
        if not data.name:
            raise ValidationError(message="Name is required", field="name")
        tag = await db.get(Tag, tag_id)
        if tag is None:
            raise NotFoundError(resource="tag", resource_id=tag_id)
        if await self._name_taken(db, data.name, exclude_id=tag_id):
            raise ConflictError(message="Tag already exists", context={"name": data.name})

        tag.name = data.name
        tag.color = data.color or DEFAULT_TAG_COLOR
        await self._flush_unique(db, data.name)
        return TagResponse.model_validate(tag)

    async def delete_tag(self, db: AsyncSession, tag_id: int) -> None:
        tag = await db.get(Tag, tag_id)
        if tag is None:
            raise NotFoundError(resource="tag", resource_id=tag_id)
        await db.execute(delete(NoteTag).where(NoteTag.tag_id == tag_id))
        await db.delete(tag)
        await db.flush()
        logger.info("Tag deleted: %d", tag_id)


# ── Singleton Instance ────────────────────────────────────────────────────
tag_service = TagService()
