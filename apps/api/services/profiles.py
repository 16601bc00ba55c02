"""Profile read/update services."""

from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.profile import Profile
from schemas.content import ProfileOut, ProfileUpdate

logger = logging.getLogger(__name__)


async def _load_profile(user_id: str, db: AsyncSession) -> Profile:
    result = await db.execute(select(Profile).where(Profile.id == user_id).limit(1))
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found.")
    return profile


async def get_profile_service(user_id: str, db: AsyncSession) -> ProfileOut:
    profile = await _load_profile(user_id, db)
    return ProfileOut.model_validate(profile)


async def update_profile_service(user_id: str, payload: ProfileUpdate, db: AsyncSession) -> ProfileOut:
    """Apply only the fields present in ``payload``."""
    profile = await _load_profile(user_id, db)
    for field_name, value in payload.model_dump(exclude_unset=True).items():
        if isinstance(value, str):
            value = value.strip() or None
        setattr(profile, field_name, value)

    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Username is already taken.") from exc

    await db.refresh(profile)
    logger.info("profile_update user=%s", user_id)
    return ProfileOut.model_validate(profile)
