"""Profile router for the signed-in user."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from schemas.content import ProfileOut, ProfileUpdate
from services.profiles import get_profile_service, update_profile_service

router = APIRouter()


@router.get("", response_model=ProfileOut)
async def get_profile(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_profile_service(auth.user_id, db)


@router.patch("", response_model=ProfileOut)
async def update_profile(
    request: ProfileUpdate,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_profile_service(auth.user_id, request, db)
