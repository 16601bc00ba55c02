"""Signed session tokens issued at sign-in and checked on every request."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings


SESSION_TOKEN_TYPE = "atlas_session"


@dataclass(frozen=True)
class SessionToken:
    token: str
    expires_at: int


def session_ttl(expires_hours: Optional[int] = None) -> timedelta:
    ttl_hours = int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24)
    return timedelta(hours=max(ttl_hours, 1))


def issue_session_token(
    user_id: str,
    email: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> SessionToken:
    """Sign a session token for ``user_id``."""
    now = datetime.now(timezone.utc)
    expires_at = now + session_ttl(expires_hours)
    claims: Dict[str, Any] = {
        "sub": user_id,
        "type": SESSION_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if email:
        claims["email"] = email

    return SessionToken(
        token=jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        expires_at=int(expires_at.timestamp()),
    )


def decode_session_token(token: str) -> Dict[str, Any]:
    """Decode and validate a session token, raising ``ValueError`` when unusable."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid or expired session token.") from exc

    if str(payload.get("type", "")).strip() != SESSION_TOKEN_TYPE:
        raise ValueError("Invalid session token type.")
    if not str(payload.get("sub", "")).strip():
        raise ValueError("Session token missing subject.")
    return payload
