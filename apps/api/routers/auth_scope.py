"""Authentication dependencies that scope every request to one user."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from database import get_db
from models.user import User
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Resolve the acting user from a Bearer session token.

    Tokens for accounts that no longer exist are rejected, so every
    ``user_id`` handed to a service refers to a stored user.
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")

    try:
        payload = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user_id = str(payload.get("sub", ""))
    result = await db.execute(select(User.id).where(User.id == user_id).limit(1))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=401, detail="Session user no longer exists.")

    return AuthContext(
        user_id=user_id,
        email=str(payload.get("email", "")) or None,
    )
