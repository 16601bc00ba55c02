from unittest.mock import patch

import pytest
from jose import jwt
from redis.exceptions import ConnectionError as RedisConnectionError

from config import settings
from main import app
from routers.rate_limit import limiter
from services.passwords import hash_password, verify_password
from services.session_token import decode_session_token, issue_session_token


def test_password_hash_roundtrip_and_rejects_wrong_password():
    stored = hash_password("correct-horse-battery")
    assert stored.startswith("pbkdf2_sha256$")
    assert verify_password("correct-horse-battery", stored) is True
    assert verify_password("wrong-horse-battery", stored) is False
    assert verify_password("anything", "not-a-hash") is False


def test_session_token_rejects_foreign_token_type():
    foreign = jwt.encode({"sub": "user-1", "type": "other"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(ValueError):
        decode_session_token(foreign)

    session = issue_session_token("user-1", "reader@example.com")
    payload = decode_session_token(session.token)
    assert payload["sub"] == "user-1"
    assert payload["email"] == "reader@example.com"


@pytest.mark.asyncio
async def test_signup_signin_and_me(integration_client):
    client, _ = integration_client

    signup = await client.post("/auth/signup", json={"email": "Reader@Example.com", "password": "correct-horse-battery"})
    assert signup.status_code == 200
    session = signup.json()
    assert session["email"] == "reader@example.com"
    assert session["session_token"]

    duplicate = await client.post("/auth/signup", json={"email": "reader@example.com", "password": "another-password"})
    assert duplicate.status_code == 409

    wrong = await client.post("/auth/signin", json={"email": "reader@example.com", "password": "not-the-password"})
    assert wrong.status_code == 401

    signin = await client.post("/auth/signin", json={"email": "reader@example.com", "password": "correct-horse-battery"})
    assert signin.status_code == 200
    headers = {"Authorization": f"Bearer {signin.json()['session_token']}"}

    me = await client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json() == {"user_id": session["user_id"], "email": "reader@example.com"}

    profile = await client.get("/profile", headers=headers)
    assert profile.status_code == 200
    assert profile.json()["id"] == session["user_id"]


@pytest.mark.asyncio
async def test_token_for_missing_user_is_rejected(integration_client):
    client, _ = integration_client
    token = issue_session_token("ghost-user").token
    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_signin_rate_limit(integration_client):
    client, _ = integration_client
    app.state.disable_rate_limits = False

    statuses = []
    with patch.object(limiter, "_hit_redis", side_effect=RedisConnectionError("redis down")):
        for _ in range(61):
            response = await client.post("/auth/signin", json={"email": "nobody@example.com", "password": "whatever-pass"})
            statuses.append(response.status_code)

    assert statuses[:60] == [401] * 60
    assert statuses[60] == 429


@pytest.mark.asyncio
async def test_signin_rate_limit_ignores_rotating_forwarded_for(integration_client):
    client, _ = integration_client
    app.state.disable_rate_limits = False

    statuses = []
    with patch.object(limiter, "_hit_redis", side_effect=RedisConnectionError("redis down")):
        for attempt in range(61):
            response = await client.post(
                "/auth/signin",
                json={"email": "nobody@example.com", "password": "whatever-pass"},
                headers={"x-forwarded-for": f"203.0.113.{attempt}"},
            )
            statuses.append(response.status_code)

    assert statuses[60] == 429


@pytest.mark.asyncio
async def test_local_counters_drop_expired_windows():
    await limiter._hit_local("atlas:rate:test:gone", 0)
    assert await limiter._hit_local("atlas:rate:test:kept", 60) == 1

    assert "atlas:rate:test:gone" not in limiter._local_counters
    assert "atlas:rate:test:kept" in limiter._local_counters


@pytest.mark.asyncio
async def test_profile_update_is_partial_and_username_unique(integration_client, make_user):
    client, _ = integration_client
    _, headers = await make_user()
    _, other_headers = await make_user()

    first = await client.patch("/profile", headers=headers, json={"username": "wanderer", "bio": "Maps and books"})
    assert first.status_code == 200
    assert first.json()["username"] == "wanderer"

    second = await client.patch("/profile", headers=headers, json={"website": "https://wanderer.example"})
    assert second.json()["bio"] == "Maps and books"
    assert second.json()["website"] == "https://wanderer.example"

    cleared = await client.patch("/profile", headers=headers, json={"bio": "  "})
    assert cleared.json()["bio"] is None

    taken = await client.patch("/profile", headers=other_headers, json={"username": "wanderer"})
    assert taken.status_code == 409
