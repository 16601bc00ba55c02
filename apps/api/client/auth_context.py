"""Signed-in user state shared by the client data layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from client.api import ShelfApiClient, ShelfApiError

logger = logging.getLogger(__name__)

AuthListener = Callable[[Optional["AuthUser"]], Any]


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str


@dataclass(frozen=True)
class AuthSession:
    token: str
    expires_at: int


class AuthContext:
    """Current user and session; failures land in ``error`` instead of raising."""

    def __init__(self, api: ShelfApiClient):
        self.api = api
        self.user: Optional[AuthUser] = None
        self.session: Optional[AuthSession] = None
        self.is_loading = False
        self.error: Optional[str] = None
        self._listeners: List[AuthListener] = []

    @property
    def is_signed_in(self) -> bool:
        return self.user is not None

    def on_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener for sign-in/out; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.user)

    def _apply_session(self, payload: Dict[str, Any]) -> None:
        self.session = AuthSession(token=payload["session_token"], expires_at=int(payload["session_expires_at"]))
        self.user = AuthUser(id=payload["user_id"], email=payload["email"])
        self.api.token = self.session.token

    def _clear(self) -> None:
        self.user = None
        self.session = None
        self.api.token = None

    async def _authenticate(self, action: str, email: str, password: str) -> bool:
        self.is_loading = True
        self.error = None
        try:
            if action == "signup":
                payload = await self.api.sign_up(email, password)
            else:
                payload = await self.api.sign_in(email, password)
        except ShelfApiError as exc:
            self.error = exc.detail
            return False
        except httpx.HTTPError as exc:
            logger.warning("Auth %s request failed: %s", action, exc)
            self.error = str(exc) or exc.__class__.__name__
            return False
        finally:
            self.is_loading = False

        self._apply_session(payload)
        self._notify()
        return True

    async def sign_up(self, email: str, password: str) -> bool:
        return await self._authenticate("signup", email, password)

    async def sign_in(self, email: str, password: str) -> bool:
        return await self._authenticate("signin", email, password)

    async def sign_out(self) -> None:
        """Drop the local session; the server acknowledgment is best-effort."""
        if self.session is not None:
            try:
                await self.api.sign_out()
            except (ShelfApiError, httpx.HTTPError) as exc:
                logger.info("Sign-out acknowledgment failed: %s", exc)
        self._clear()
        self.error = None
        self._notify()

    async def refresh(self) -> bool:
        """Reload the current user; an expired or revoked session signs out."""
        if self.session is None:
            return False
        self.is_loading = True
        try:
            payload = await self.api.me()
        except ShelfApiError as exc:
            self.error = exc.detail
            if exc.status_code == 401:
                self._clear()
                self._notify()
            return False
        except httpx.HTTPError as exc:
            self.error = str(exc) or exc.__class__.__name__
            return False
        finally:
            self.is_loading = False
        self.user = AuthUser(id=payload["user_id"], email=payload["email"])
        return True
