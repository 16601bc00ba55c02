"""Cached content lists for the signed-in user, kept in step with the API."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, TypeVar

import httpx

from client.api import ShelfApiClient, ShelfApiError
from client.auth_context import AuthContext, AuthUser
from schemas.content import BookOut, ContentOut, CountryOut, PodcastOut, ProfileOut

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENTITIES = ("contents", "books", "podcasts", "countries", "profile")


class DataContext:
    """Per-user lists of contents, books, podcasts and countries plus the profile.

    Every operation is a no-op while signed out. Failed calls set ``error`` and
    leave cached state untouched; nothing here raises on API errors.
    """

    def __init__(self, api: ShelfApiClient, auth: AuthContext):
        self.api = api
        self.auth = auth
        self.contents: List[ContentOut] = []
        self.books: List[BookOut] = []
        self.podcasts: List[PodcastOut] = []
        self.countries: List[CountryOut] = []
        self.profile: Optional[ProfileOut] = None
        self.error: Optional[str] = None
        self._pending: Dict[str, int] = {name: 0 for name in ENTITIES}
        self._unsubscribe = auth.on_change(self._on_auth_change)

    @property
    def loading(self) -> Dict[str, bool]:
        """Per-entity flags; an entity stays loading until its last call returns."""
        return {name: count > 0 for name, count in self._pending.items()}

    @property
    def is_loading(self) -> bool:
        return any(self._pending.values())

    def close(self) -> None:
        self._unsubscribe()

    def reset(self) -> None:
        self.contents = []
        self.books = []
        self.podcasts = []
        self.countries = []
        self.profile = None
        self.error = None

    def _on_auth_change(self, user: Optional[AuthUser]) -> None:
        if user is None:
            self.reset()

    @contextmanager
    def _loading(self, entity: str) -> Iterator[None]:
        self._pending[entity] += 1
        try:
            yield
        finally:
            self._pending[entity] -= 1

    async def _call(self, entity: str, action: str, call: Callable[[], Awaitable[T]]) -> Optional[T]:
        if not self.auth.is_signed_in:
            return None
        with self._loading(entity):
            self.error = None
            try:
                return await call()
            except ShelfApiError as exc:
                self.error = f"Failed to {action}: {exc.detail}"
            except httpx.HTTPError as exc:
                self.error = f"Failed to {action}: {exc}"
            logger.warning(self.error)
            return None

    @staticmethod
    def _replace(items: List[Any], updated: Any) -> List[Any]:
        return [updated if item.id == updated.id else item for item in items]

    @staticmethod
    def _drop(items: List[Any], item_id: str) -> List[Any]:
        return [item for item in items if item.id != item_id]

    # Contents
    async def fetch_contents(self, content_type: Optional[str] = None) -> None:
        result = await self._call("contents", "fetch contents", lambda: self.api.list_contents(content_type))
        if result is not None:
            self.contents = result

    async def add_content(self, payload: Dict[str, Any]) -> Optional[ContentOut]:
        created = await self._call("contents", "add content", lambda: self.api.create_content(payload))
        if created is not None:
            self.contents = [created, *self.contents]
        return created

    async def update_content(self, content_id: str, payload: Dict[str, Any]) -> Optional[ContentOut]:
        updated = await self._call("contents", "update content", lambda: self.api.update_content(content_id, payload))
        if updated is not None:
            self.contents = self._replace(self.contents, updated)
        return updated

    async def delete_content(self, content_id: str) -> bool:
        sentinel = await self._call("contents", "delete content", lambda: self._deleted(self.api.delete_content(content_id)))
        if sentinel:
            self.contents = self._drop(self.contents, content_id)
        return bool(sentinel)

    # Books
    async def fetch_books(self) -> None:
        result = await self._call("books", "fetch books", self.api.list_books)
        if result is not None:
            self.books = result

    async def add_book(self, payload: Dict[str, Any]) -> Optional[BookOut]:
        created = await self._call("books", "add book", lambda: self.api.add_book(payload))
        if created is not None:
            self.books = [created, *self.books]
        return created

    async def update_book(self, book_id: str, payload: Dict[str, Any]) -> Optional[BookOut]:
        updated = await self._call("books", "update book", lambda: self.api.update_book(book_id, payload))
        if updated is not None:
            self.books = self._replace(self.books, updated)
        return updated

    async def delete_book(self, book_id: str) -> bool:
        sentinel = await self._call("books", "delete book", lambda: self._deleted(self.api.delete_book(book_id)))
        if sentinel:
            self.books = self._drop(self.books, book_id)
        return bool(sentinel)

    # Podcasts
    async def fetch_podcasts(self) -> None:
        result = await self._call("podcasts", "fetch podcasts", self.api.list_podcasts)
        if result is not None:
            self.podcasts = result

    async def add_podcast(self, payload: Dict[str, Any]) -> Optional[PodcastOut]:
        created = await self._call("podcasts", "add podcast", lambda: self.api.add_podcast(payload))
        if created is not None:
            self.podcasts = [created, *self.podcasts]
        return created

    async def update_podcast(self, podcast_id: str, payload: Dict[str, Any]) -> Optional[PodcastOut]:
        updated = await self._call("podcasts", "update podcast", lambda: self.api.update_podcast(podcast_id, payload))
        if updated is not None:
            self.podcasts = self._replace(self.podcasts, updated)
        return updated

    async def delete_podcast(self, podcast_id: str) -> bool:
        sentinel = await self._call("podcasts", "delete podcast", lambda: self._deleted(self.api.delete_podcast(podcast_id)))
        if sentinel:
            self.podcasts = self._drop(self.podcasts, podcast_id)
        return bool(sentinel)

    # Countries / profile
    async def fetch_countries(self) -> None:
        result = await self._call("countries", "fetch countries", self.api.list_countries)
        if result is not None:
            self.countries = result

    async def fetch_profile(self) -> None:
        result = await self._call("profile", "fetch profile", self.api.get_profile)
        if result is not None:
            self.profile = result

    async def update_profile(self, payload: Dict[str, Any]) -> Optional[ProfileOut]:
        updated = await self._call("profile", "update profile", lambda: self.api.update_profile(payload))
        if updated is not None:
            self.profile = updated
        return updated

    @staticmethod
    async def _deleted(call: Awaitable[None]) -> bool:
        await call
        return True
