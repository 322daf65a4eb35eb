from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from studyhub.api.deps import get_db
from studyhub.api.http_errors import value_error
from studyhub.schemas.profiles import CreateProfileRequest, ProfileOut
from studyhub.services.profiles import create_profile, get_profile, list_profiles

router = APIRouter(prefix="/profiles", tags=["profiles"])


def to_out(p) -> ProfileOut:
    return ProfileOut(
        id=p.id,
        name=p.name,
        email=p.email,
        faculty=p.faculty,
        course=p.course,
        year_of_study=p.year_of_study,
        created_at=p.created_at,
    )


@router.post("", response_model=ProfileOut, status_code=201)
async def create_profile_route(
    payload: CreateProfileRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        profile = await create_profile(db, **payload.model_dump())
        await db.commit()
        return to_out(profile)
    except ValueError as e:
        await db.rollback()
        raise value_error(e) from e


@router.get("", response_model=list[ProfileOut])
async def list_profiles_route(db: AsyncSession = Depends(get_db)):
    return [to_out(p) for p in await list_profiles(db)]


@router.get("/{profile_id}", response_model=ProfileOut)
async def profile_detail_route(
    profile_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        return to_out(await get_profile(db, profile_id))
    except ValueError as e:
        raise value_error(e) from e
