"""
DLE Backend - People Route Handlers
=====================================

What:  CRUD for the people of the diary (family members, friends, doctors).
How:   Thin handlers: extract path/body, delegate to PersonService.
Who:   The frontend People pages and the habit tracker person picker.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.schemas.common import ErrorResponse, SuccessResponse
from app.schemas.person import PersonDetailResponse, PersonResponse, PersonWrite
from app.services.person_service import person_service

router = APIRouter(prefix="/api", tags=["People"])


@router.get(
    "/people",
    response_model=List[PersonResponse],
    summary="List people ordered by name",
)
async def list_people(db: AsyncSession = Depends(get_db_session)) -> List[PersonResponse]:
    return await person_service.list_people(db)


@router.get(
    "/people/{person_id}",
    response_model=PersonDetailResponse,
    responses={404: {"description": "Person not found", "model": ErrorResponse}},
    summary="Get a person with the notes they appear in",
)
async def get_person(
    person_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> PersonDetailResponse:
    """
    Person detail.

    `notes` is the person's timeline (notes linked to them, newest event
    first, each with the person's role); the free-text notes about the
    person are returned as `person_notes`.
    """
    return await person_service.get_person(db, person_id)


@router.post(
    "/people",
    response_model=PersonResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Name missing", "model": ErrorResponse}},
    summary="Create a person",
)
async def create_person(
    data: PersonWrite,
    db: AsyncSession = Depends(get_db_session),
) -> PersonResponse:
    return await person_service.create_person(db, data)


@router.put(
    "/people/{person_id}",
    response_model=PersonResponse,
    responses={
        400: {"description": "Name missing", "model": ErrorResponse},
        404: {"description": "Person not found", "model": ErrorResponse},
    },
    summary="Replace a person's fields",
)
async def update_person(
    person_id: int,
    data: PersonWrite,
    db: AsyncSession = Depends(get_db_session),
) -> PersonResponse:
    return await person_service.update_person(db, person_id, data)


@router.delete(
    "/people/{person_id}",
    response_model=SuccessResponse,
    responses={404: {"description": "Person not found", "model": ErrorResponse}},
    summary="Delete a person with their note links, habits and habit logs",
)
async def delete_person(
    person_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> SuccessResponse:
    await person_service.delete_person(db, person_id)
    return SuccessResponse()
