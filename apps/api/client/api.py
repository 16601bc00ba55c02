"""Thin async wrapper over the Atlas Shelf HTTP API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from schemas.content import BookOut, ContentOut, CountryOut, PodcastOut, ProfileOut

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"


class ShelfApiError(RuntimeError):
    """Non-2xx API response; ``detail`` carries the server's message."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    detail = payload.get("detail") if isinstance(payload, dict) else None
    if isinstance(detail, list):
        messages = [str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail]
        return "; ".join(messages)
    return str(detail or payload)


class ShelfApiClient:
    """Holds the session token and maps API payloads onto output schemas.

    Pass ``client`` to reuse a configured ``httpx.AsyncClient`` (tests pass one
    bound to the ASGI app); otherwise the wrapper owns its own client.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        token: Optional[str] = None,
        timeout: float = 15.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url or DEFAULT_BASE_URL, timeout=timeout)
        self.token = token

    async def __aenter__(self) -> "ShelfApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        query = {key: value for key, value in (params or {}).items() if value is not None}
        response = await self._client.request(method, path, json=json, params=query or None, headers=headers)
        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.debug("API %s %s failed status=%s detail=%s", method, path, response.status_code, detail)
            raise ShelfApiError(response.status_code, detail)
        if not response.content:
            return None
        return response.json()

    # Auth
    async def sign_up(self, email: str, password: str) -> Dict[str, Any]:
        return await self.request("POST", "/auth/signup", json={"email": email, "password": password})

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        return await self.request("POST", "/auth/signin", json={"email": email, "password": password})

    async def sign_out(self) -> None:
        await self.request("POST", "/auth/signout")

    async def me(self) -> Dict[str, Any]:
        return await self.request("GET", "/auth/me")

    # Contents
    async def list_contents(self, content_type: Optional[str] = None) -> List[ContentOut]:
        payload = await self.request("GET", "/contents", params={"type": content_type})
        return [ContentOut.model_validate(item) for item in payload]

    async def create_content(self, payload: Dict[str, Any]) -> ContentOut:
        return ContentOut.model_validate(await self.request("POST", "/contents", json=payload))

    async def update_content(self, content_id: str, payload: Dict[str, Any]) -> ContentOut:
        return ContentOut.model_validate(await self.request("PUT", f"/contents/{content_id}", json=payload))

    async def delete_content(self, content_id: str) -> None:
        await self.request("DELETE", f"/contents/{content_id}")

    # Books / podcasts
    async def list_books(self) -> List[BookOut]:
        return [BookOut.model_validate(item) for item in await self.request("GET", "/books")]

    async def add_book(self, payload: Dict[str, Any]) -> BookOut:
        return BookOut.model_validate(await self.request("POST", "/books", json=payload))

    async def update_book(self, book_id: str, payload: Dict[str, Any]) -> BookOut:
        return BookOut.model_validate(await self.request("PUT", f"/books/{book_id}", json=payload))

    async def delete_book(self, book_id: str) -> None:
        await self.request("DELETE", f"/books/{book_id}")

    async def list_podcasts(self) -> List[PodcastOut]:
        return [PodcastOut.model_validate(item) for item in await self.request("GET", "/podcasts")]

    async def add_podcast(self, payload: Dict[str, Any]) -> PodcastOut:
        return PodcastOut.model_validate(await self.request("POST", "/podcasts", json=payload))

    async def update_podcast(self, podcast_id: str, payload: Dict[str, Any]) -> PodcastOut:
        return PodcastOut.model_validate(await self.request("PUT", f"/podcasts/{podcast_id}", json=payload))

    async def delete_podcast(self, podcast_id: str) -> None:
        await self.request("DELETE", f"/podcasts/{podcast_id}")

    # Locations / profile
    async def list_countries(self) -> List[CountryOut]:
        return [CountryOut.model_validate(item) for item in await self.request("GET", "/locations/countries")]

    async def get_profile(self) -> ProfileOut:
        return ProfileOut.model_validate(await self.request("GET", "/profile"))

    async def update_profile(self, payload: Dict[str, Any]) -> ProfileOut:
        return ProfileOut.model_validate(await self.request("PATCH", "/profile", json=payload))
