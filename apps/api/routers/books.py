"""Book and podcast routers: flattened views over content for older clients."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from models.content import ContentType
from routers.auth_scope import AuthContext, get_auth_context
from schemas.content import BookInput, BookOut, CityInput, PodcastInput, PodcastOut
from services.content import (
    content_to_book,
    content_to_podcast,
    create_content_service,
    delete_content_service,
    list_books_service,
    list_podcasts_service,
    patch_content_service,
)

books_router = APIRouter()
podcasts_router = APIRouter()


def _split_authors(value: Optional[str]) -> Optional[List[str]]:
    """Inverse of the ``", "`` join used by the book view."""
    if value is None:
        return None
    return [name.strip() for name in value.split(",") if name.strip()] or None


class _FlatContentRequest(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    url: Optional[str] = None
    cover_url: Optional[str] = None
    cities: Optional[List[CityInput]] = None

    def to_changes(self) -> Dict[str, Any]:
        """Fields the caller sent, under their content column names."""
        changes = self.model_dump(exclude_unset=True)
        if "cover_url" in changes:
            changes["cover_image_url"] = changes.pop("cover_url")
        return changes


class BookRequest(_FlatContentRequest):
    author: Optional[str] = None

    def to_changes(self) -> Dict[str, Any]:
        changes = super().to_changes()
        if "author" in changes:
            changes["author"] = _split_authors(changes["author"])
        return changes

    def to_input(self) -> BookInput:
        return BookInput(**self.to_changes())


class PodcastRequest(_FlatContentRequest):
    audio_url: Optional[str] = None

    def to_input(self) -> PodcastInput:
        return PodcastInput(**self.to_changes())


@books_router.get("", response_model=List[BookOut])
async def list_books(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_books_service(auth.user_id, db)


@books_router.post("", response_model=BookOut)
async def add_book(
    request: BookRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    content = await create_content_service(auth.user_id, request.to_input(), db)
    return content_to_book(content)


@books_router.put("/{book_id}", response_model=BookOut)
async def update_book(
    book_id: str,
    request: BookRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    content = await patch_content_service(
        auth.user_id, book_id, ContentType.BOOK.value, request.to_changes(), db
    )
    return content_to_book(content)


@books_router.delete("/{book_id}")
async def delete_book(
    book_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await delete_content_service(auth.user_id, book_id, db, content_type=ContentType.BOOK.value)


@podcasts_router.get("", response_model=List[PodcastOut])
async def list_podcasts(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await list_podcasts_service(auth.user_id, db)


@podcasts_router.post("", response_model=PodcastOut)
async def add_podcast(
    request: PodcastRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    content = await create_content_service(auth.user_id, request.to_input(), db)
    return content_to_podcast(content)


@podcasts_router.put("/{podcast_id}", response_model=PodcastOut)
async def update_podcast(
    podcast_id: str,
    request: PodcastRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    content = await patch_content_service(
        auth.user_id, podcast_id, ContentType.PODCAST.value, request.to_changes(), db
    )
    return content_to_podcast(content)


@podcasts_router.delete("/{podcast_id}")
async def delete_podcast(
    podcast_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await delete_content_service(auth.user_id, podcast_id, db, content_type=ContentType.PODCAST.value)
