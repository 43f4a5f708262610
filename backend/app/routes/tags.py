"""
DLE Backend - Tag Route Handlers
==================================

What:  CRUD for note tags. Tag names are unique; a duplicate gives 409.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse, SuccessResponse
from app.schemas.tag import TagResponse, TagWrite
from app.services.tag_service import tag_service

router = APIRouter(prefix="/api", tags=["Tags"])


@router.get("/tags", response_model=List[TagResponse], summary="List tags ordered by name")
async def list_tags(db: AsyncSession = Depends(get_db_session)) -> List[TagResponse]:
    return await tag_service.list_tags(db)


@router.post(
    "/tags",
    response_model=TagResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Name missing", "model": ErrorResponse},
        409: {"description": "Tag already exists", "model": ErrorResponse},
    },
    summary="Create a tag",
)
async def create_tag(data: TagWrite, db: AsyncSession = Depends(get_db_session)) -> TagResponse:
    return await tag_service.create_tag(db, data)


@router.put(
    "/tags/{tag_id}",
    response_model=TagResponse,
    responses={
        404: {"description": "Tag not found", "model": ErrorResponse},
        409: {"description": "Tag already exists", "model": ErrorResponse},
    },
    summary="Rename or recolor a tag",
)
async def update_tag(
    tag_id: int,
    data: TagWrite,
    db: AsyncSession = Depends(get_db_session),
) -> TagResponse:
    return await tag_service.update_tag(db, tag_id, data)


@router.delete(
    "/tags/{tag_id}",
    response_model=SuccessResponse,
    responses={404: {"description": "Tag not found", "model": ErrorResponse}},
    summary="Delete a tag and unlink it from notes",
)
async def delete_tag(tag_id: int, db: AsyncSession = Depends(get_db_session)) -> SuccessResponse:
    await tag_service.delete_tag(db, tag_id)
    return SuccessResponse()
