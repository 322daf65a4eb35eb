from __future__ import annotations

from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from studyhub.models.profile import Profile


async def create_profile(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    faculty: str | None = None,
    course: str | None = None,
    year_of_study: int | None = None,
) -> Profile:
    email = email.strip().lower()
    existing = (await db.execute(sa.select(Profile.id).where(Profile.email == email))).scalar_one_or_none()
    if existing is not None:
        raise ValueError("email_taken")

    profile = Profile(
        name=name.strip(),
        email=email,
        faculty=faculty,
        course=course,
        year_of_study=year_of_study,
    )
    db.add(profile)
    await db.flush()
    await db.refresh(profile)
    return profile


async def list_profiles(db: AsyncSession) -> list[Profile]:
    q = sa.select(Profile).order_by(Profile.name.asc())
    return list((await db.execute(q)).scalars().all())


async def get_profile(db: AsyncSession, profile_id: UUID) -> Profile:
    profile = (await db.execute(sa.select(Profile).where(Profile.id == profile_id))).scalar_one_or_none()
    if profile is None:
        raise ValueError("profile_not_found")
    return profile


async def profile_exists(db: AsyncSession, profile_id: UUID) -> bool:
    q = sa.select(Profile.id).where(Profile.id == profile_id)
    return (await db.execute(q)).scalar_one_or_none() is not None
