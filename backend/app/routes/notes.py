"""
DLE Backend - Notes & Photos Route Handlers
=============================================

What:  Note timeline CRUD, photo upload/delete, and the photo proxy.
How:   Extracts query parameters, bodies and multipart uploads, delegates
       to NoteService and StorageService, returns JSON (or raw bytes for
       the proxy).
Who:   The frontend Timeline, NoteEditor and NoteDetail components.

Caching Strategy:
    - Note endpoints: none (notes are edited in place)
    - GET /api/photo/{key}: private, 24h (a key is never rewritten; a new
      upload always gets a new timestamped key)
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse, SuccessResponse
from app.schemas.note import NoteResponse, NoteWrite, PhotoResponse
from app.services.note_service import note_service
from app.services.storage_service import storage_service

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api", tags=["Notes"])


@router.get(
    "/notes",
    response_model=List[NoteResponse],
    summary="List notes with optional filters",
    description=(
        "Returns the note timeline ordered by event date (newest first), each "
        "note with its people, tags and photos. All filters combine with AND."
    ),
)
async def list_notes(
    category: Optional[str] = Query(default=None, description="Exact category"),
    person_id: Optional[int] = Query(default=None, description="Notes linked to this person"),
    tag_id: Optional[int] = Query(default=None, description="Notes carrying this tag"),
    search: Optional[str] = Query(default=None, description="Substring of title or content"),
    start_date: Optional[date] = Query(default=None, description="event_date on or after (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(default=None, description="event_date on or before (YYYY-MM-DD)"),
    importance: Optional[str] = Query(default=None, description="Low, Medium or High"),
    db: AsyncSession = Depends(get_db_session),
) -> List[NoteResponse]:
    return await note_service.list_notes(
        db=db,
        category=category,
        person_id=person_id,
        tag_id=tag_id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        importance=importance,
    )


@router.get(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Get a single note with people, tags and photos",
)
async def get_note(note_id: int, db: AsyncSession = Depends(get_db_session)) -> NoteResponse:
    return await note_service.get_note(db, note_id)


@router.post(
    "/notes",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Missing content, bad importance or unknown link ids", "model": ErrorResponse},
        404: {"description": "event_id does not exist", "model": ErrorResponse},
    },
    summary="Create a note",
)
async def create_note(data: NoteWrite, db: AsyncSession = Depends(get_db_session)) -> NoteResponse:
    """
    Create a note with its person and tag links.

    Example body:
        {
            "title": "Checkup",
            "content": "Annual checkup with Dr. Rao, all fine.",
            "category": "Health",
            "importance": "Medium",
            "event_date": "2024-06-10",
            "people": [{"id": 3, "role": "doctor"}],
            "tags": [1]
        }
    """
    return await note_service.create_note(db, data)


@router.put(
    "/notes/{note_id}",
    response_model=NoteResponse,
    responses={
        400: {"description": "Missing content, bad importance or unknown link ids", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Replace a note's fields and links",
)
async def update_note(
    note_id: int,
    data: NoteWrite,
    db: AsyncSession = Depends(get_db_session),
) -> NoteResponse:
    return await note_service.update_note(db, note_id, data)


@router.delete(
    "/notes/{note_id}",
    response_model=SuccessResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Delete a note, its photos and its links",
)
async def delete_note(note_id: int, db: AsyncSession = Depends(get_db_session)) -> SuccessResponse:
    await note_service.delete_note(db, note_id)
    return SuccessResponse()


# ── Photos ────────────────────────────────────────────────────────────────


@router.post(
    "/notes/{note_id}/photos",
    response_model=PhotoResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Empty or oversized upload", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
        500: {"description": "Storage write failed", "model": ErrorResponse},
    },
    summary="Attach a photo to a note",
)
async def upload_photo(
    note_id: int,
    photo: UploadFile = File(..., description="Image file"),
    caption: Optional[str] = Form(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> PhotoResponse:
    """
    Store the uploaded image under photos/{noteId}_{timestamp}_{filename}
    and record it against the note.

    The whole upload is read into memory; the size check in the service
    runs against max_file_size.
    """
    content = await photo.read()
    return await note_service.add_photo(
        db,
        note_id,
        filename=photo.filename,
        content=content,
        content_type=photo.content_type,
        caption=caption,
    )


@router.get(
    "/photo/{key:path}",
    responses={
        200: {"description": "Image bytes"},
        404: {"description": "Photo not found", "model": ErrorResponse},
    },
    summary="Serve a stored photo",
)
async def serve_photo(key: str) -> Response:
    stored = await storage_service.get(key, default_content_type="image/jpeg")
    return Response(
        content=stored.content,
        media_type=stored.content_type,
        headers={"Cache-Control": "private, max-age=86400"},
    )


@router.delete(
    "/photos/{photo_id}",
    response_model=SuccessResponse,
    responses={404: {"description": "Photo not found", "model": ErrorResponse}},
    summary="Delete a photo and its stored file",
)
async def delete_photo(photo_id: int, db: AsyncSession = Depends(get_db_session)) -> SuccessResponse:
    await note_service.delete_photo(db, photo_id)
    return SuccessResponse()
