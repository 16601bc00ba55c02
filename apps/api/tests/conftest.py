import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from database import Base, get_db
from main import app
from models.profile import Profile
from models.user import User
from routers.rate_limit import limiter
from services.geocoding import get_geocoder
from services.passwords import hash_password
from services.session_token import issue_session_token


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    limiter.reset()
    yield
    limiter.reset()
    app.state.disable_rate_limits = previous


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(settings, "PASSWORD_HASH_ITERATIONS", 1000)


@pytest_asyncio.fixture
async def integration_client(tmp_path):
    db_path = tmp_path / "integration.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, session_maker

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_geocoder, None)
    await engine.dispose()


async def create_user(session_maker, email=None, password="correct-horse-battery"):
    """Insert a user with an empty profile and return ``(user_id, auth headers)``."""
    user_id = str(uuid.uuid4())
    email = email or f"{user_id[:8]}@example.com"
    async with session_maker() as session:
        session.add(User(id=user_id, email=email, password_hash=hash_password(password)))
        await session.flush()
        session.add(Profile(id=user_id))
        await session.commit()
    token = issue_session_token(user_id, email).token
    return user_id, {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(integration_client):
    _, session_maker = integration_client

    async def _make_user(email=None, password="correct-horse-battery"):
        return await create_user(session_maker, email=email, password=password)

    return _make_user
