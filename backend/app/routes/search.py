"""
DLE Backend - Search & Categories Route Handlers
==================================================

What:  Global substring search over notes and people, and per-category
       note counts for the category sidebar.
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse
from app.schemas.note import CategoryCount, SearchResponse
from app.services.search_service import search_service

router = APIRouter(prefix="/api", tags=["Search"])


@router.get(
    "/search",
    response_model=SearchResponse,
    responses={400: {"description": "Query shorter than 2 characters", "model": ErrorResponse}},
    summary="Search notes and people",
)
async def search(
    q: str = Query(default="", description="Substring to match (at least 2 characters)"),
    db: AsyncSession = Depends(get_db_session),
) -> SearchResponse:
    """
    Notes match on title or content (up to 50), people on name or notes
    (up to 20). The length check lives in the service so a missing `q`
    gets the same 400 as a one-character one.
    """
    return await search_service.search(db, q)


@router.get(
    "/categories",
    response_model=List[CategoryCount],
    summary="Note count per category",
)
async def list_categories(db: AsyncSession = Depends(get_db_session)) -> List[CategoryCount]:
    return await search_service.list_categories(db)
