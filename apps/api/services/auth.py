"""Email/password account services."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.profile import Profile
from models.user import User
from services.passwords import hash_password, verify_password
from services.session_token import issue_session_token

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def _session_payload(user: User) -> Dict[str, Any]:
    session = issue_session_token(user.id, user.email)
    return {
        "user_id": user.id,
        "email": user.email,
        "session_token": session.token,
        "session_expires_at": session.expires_at,
    }


async def sign_up_service(email: str, password: str, db: AsyncSession) -> Dict[str, Any]:
    """Create an account with an empty profile and return a session."""
    normalized = _normalize_email(email)
    result = await db.execute(select(User).where(User.email == normalized).limit(1))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="An account with this email already exists.")

    user = User(
        id=str(uuid.uuid4()),
        email=normalized,
        password_hash=hash_password(password),
        last_sign_in_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.flush()
    db.add(Profile(id=user.id))
    await db.commit()

    logger.info("auth_signup user=%s", user.id)
    return _session_payload(user)


async def sign_in_service(email: str, password: str, db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(select(User).where(User.email == _normalize_email(email)).limit(1))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password.")

    user.last_sign_in_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("auth_signin user=%s", user.id)
    return _session_payload(user)


async def get_user_service(user_id: str, db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(select(User).where(User.id == user_id).limit(1))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user_id": user.id, "email": user.email}
