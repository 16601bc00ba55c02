"""
Authentication router: email/password sign-up, sign-in and session checks.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from services.auth import get_user_service, sign_in_service, sign_up_service

router = APIRouter()


class CredentialsRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=256)


class SessionResponse(BaseModel):
    user_id: str
    email: str
    session_token: str
    session_expires_at: int


class CurrentUserResponse(BaseModel):
    user_id: str
    email: str


@router.post("/signup", response_model=SessionResponse)
async def sign_up(
    request: CredentialsRequest,
    _rate_limit: None = Depends(rate_limit("auth_signup", limit=20, window_seconds=3600)),
    db: AsyncSession = Depends(get_db),
):
    """Create an account and return a session token."""
    return await sign_up_service(request.email, request.password, db)


@router.post("/signin", response_model=SessionResponse)
async def sign_in(
    request: CredentialsRequest,
    _rate_limit: None = Depends(rate_limit("auth_signin", limit=60, window_seconds=3600)),
    db: AsyncSession = Depends(get_db),
):
    return await sign_in_service(request.email, request.password, db)


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_service(auth.user_id, db)


@router.post("/signout")
async def sign_out(_auth: AuthContext = Depends(get_auth_context)):
    """Client-managed sign-out acknowledgment; tokens expire on their own."""
    return {"message": "Signed out successfully"}
