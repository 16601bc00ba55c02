"""Content CRUD router (all content types)."""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.content import ContentType
from routers.auth_scope import AuthContext, get_auth_context
from schemas.content import ContentOut, ContentVariant
from services.content import (
    create_content_service,
    delete_content_service,
    get_content_service,
    list_contents_service,
    update_content_service,
)

router = APIRouter()

ContentBody = Annotated[ContentVariant, Body(discriminator="type")]


@router.get("", response_model=List[ContentOut])
async def list_contents(
    type: Optional[ContentType] = Query(default=None),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_contents_service(auth.user_id, db, type.value if type else None)


@router.post("", response_model=ContentOut)
async def create_content(
    payload: ContentBody,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await create_content_service(auth.user_id, payload, db)


@router.get("/{content_id}", response_model=ContentOut)
async def get_content(
    content_id: str,
    include_deleted: bool = Query(default=False),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Fetch one item; ``include_deleted`` reads soft-deleted rows too."""
    return await get_content_service(auth.user_id, content_id, db, include_deleted=include_deleted)


@router.put("/{content_id}", response_model=ContentOut)
async def update_content(
    content_id: str,
    payload: ContentBody,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await update_content_service(auth.user_id, content_id, payload, db)


@router.delete("/{content_id}")
async def delete_content(
    content_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await delete_content_service(auth.user_id, content_id, db)
