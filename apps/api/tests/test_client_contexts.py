import asyncio

import httpx
import pytest
import pytest_asyncio

from client import AuthContext, DataContext, ShelfApiClient


PARIS = {"name": "Paris", "country_code": "FR", "country_name": "France"}


@pytest_asyncio.fixture
async def contexts(integration_client):
    client, _ = integration_client
    api = ShelfApiClient(client=client)
    auth = AuthContext(api)
    data = DataContext(api, auth)
    yield api, auth, data
    data.close()
    await api.aclose()


@pytest.mark.asyncio
async def test_auth_context_signs_in_and_notifies_listeners(contexts):
    _, auth, _ = contexts
    seen = []
    auth.on_change(seen.append)

    assert await auth.sign_up("traveler@example.com", "correct-horse-battery") is True
    assert auth.user.email == "traveler@example.com"
    assert auth.session.token
    assert seen[-1].email == "traveler@example.com"

    await auth.sign_out()
    assert auth.user is None and auth.session is None
    assert seen[-1] is None

    assert await auth.sign_in("traveler@example.com", "wrong-password!") is False
    assert auth.error == "Invalid email or password."
    assert auth.is_signed_in is False

    assert await auth.sign_in("traveler@example.com", "correct-horse-battery") is True
    assert await auth.refresh() is True
    assert auth.error is None


@pytest.mark.asyncio
async def test_data_context_is_noop_when_signed_out(contexts):
    _, _, data = contexts

    await data.fetch_contents()
    created = await data.add_content({"type": "book", "title": "Ignored"})

    assert created is None
    assert data.contents == []
    assert data.error is None


@pytest.mark.asyncio
async def test_data_context_keeps_lists_in_step_with_server(contexts):
    _, auth, data = contexts
    await auth.sign_up("keeper@example.com", "correct-horse-battery")

    first = await data.add_content({"type": "book", "title": "First", "cities": [PARIS]})
    second = await data.add_content({"type": "podcast", "title": "Second", "audio_url": "https://cdn.example/2.mp3"})
    assert [item.id for item in data.contents] == [second.id, first.id]
    assert data.contents[1].countries[0].code == "FR"

    updated = await data.update_content(first.id, {"type": "book", "title": "First, revised"})
    assert updated.title == "First, revised"
    assert [item.title for item in data.contents] == ["Second", "First, revised"]

    assert await data.delete_content(second.id) is True
    assert [item.id for item in data.contents] == [first.id]

    await data.fetch_contents()
    assert [item.title for item in data.contents] == ["First, revised"]

    await data.fetch_countries()
    assert [country.code for country in data.countries] == ["FR"]

    await data.fetch_books()
    assert [book.title for book in data.books] == ["First, revised"]
    assert data.is_loading is False
    assert data.loading["contents"] is False


@pytest.mark.asyncio
async def test_data_context_records_errors_and_keeps_stale_list(contexts):
    _, auth, data = contexts
    await auth.sign_up("errors@example.com", "correct-horse-battery")
    await data.add_content({"type": "book", "title": "Survivor"})

    result = await data.update_content("missing-id", {"type": "book", "title": "Nope"})
    assert result is None
    assert data.error == "Failed to update content: Content not found."
    assert [item.title for item in data.contents] == ["Survivor"]

    invalid = await data.add_content({"type": "book", "title": "   "})
    assert invalid is None
    assert data.error.startswith("Failed to add content:")
    assert len(data.contents) == 1


@pytest.mark.asyncio
async def test_data_context_handles_transport_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/signin":
            return httpx.Response(
                200,
                json={"user_id": "u1", "email": "a@example.com", "session_token": "t", "session_expires_at": 0},
            )
        raise httpx.ConnectError("offline", request=request)

    api = ShelfApiClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test"))
    auth = AuthContext(api)
    data = DataContext(api, auth)
    await auth.sign_in("a@example.com", "correct-horse-battery")

    await data.fetch_podcasts()
    assert data.podcasts == []
    assert data.error.startswith("Failed to fetch podcasts:")
    assert data.is_loading is False


@pytest.mark.asyncio
async def test_entity_stays_loading_until_last_overlapping_call_returns():
    gates = [asyncio.Event(), asyncio.Event()]
    started = []

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/signin":
            return httpx.Response(
                200,
                json={"user_id": "u1", "email": "a@example.com", "session_token": "t", "session_expires_at": 0},
            )
        gate = gates[len(started)]
        started.append(request.url.path)
        await gate.wait()
        return httpx.Response(200, json=[])

    api = ShelfApiClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test"))
    auth = AuthContext(api)
    data = DataContext(api, auth)
    await auth.sign_in("a@example.com", "correct-horse-battery")

    first = asyncio.create_task(data.fetch_books())
    second = asyncio.create_task(data.fetch_books())
    while len(started) < 2:
        await asyncio.sleep(0)

    gates[0].set()
    await first
    assert data.loading["books"] is True
    assert data.is_loading is True

    gates[1].set()
    await second
    assert data.loading["books"] is False
    assert data.is_loading is False


@pytest.mark.asyncio
async def test_sign_out_clears_cached_data(contexts):
    _, auth, data = contexts
    await auth.sign_up("leaver@example.com", "correct-horse-battery")
    await data.add_content({"type": "article", "title": "Left behind"})
    await data.fetch_profile()
    assert data.profile is not None

    await auth.sign_out()

    assert data.contents == []
    assert data.profile is None
