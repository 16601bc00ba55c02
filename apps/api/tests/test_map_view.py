import asyncio

import pytest

from config import settings
from schemas.content import CityOut, ContentOut
from services.geocoding import GeocodingConfigError
from services.map_view import MapState, MapStateError, MapView, filter_contents, highlighted_country_codes


COORDINATES = {
    ("Paris", "FR"): (2.35, 48.85),
    ("Lyon", "FR"): (4.83, 45.76),
    ("Kyoto", "JP"): (135.77, 35.01),
}


class FakeGeocoder:
    """Resolves from a fixed table; optional gate to hold lookups open."""

    def __init__(self, table=None, gate=None):
        self.table = dict(COORDINATES if table is None else table)
        self.gate = gate
        self.calls = []
        self.access_token = "test-token"

    async def geocode_city(self, name, country_code):
        self.calls.append((name, country_code))
        if self.gate is not None:
            await self.gate.wait()
        return self.table.get((name, country_code))


def _city(name, code, **extra):
    return CityOut(name=name, country_code=code, country_name=code, **extra)


def _content(content_id, title, cities, content_type="book", user_id="reader-1"):
    return ContentOut(id=content_id, user_id=user_id, type=content_type, title=title, cities=cities)


async def _loaded_view(geocoder=None, **kwargs):
    view = MapView(geocoder or FakeGeocoder(), access_token="test-token", **kwargs)
    view.initialize()
    await view.mark_loaded()
    return view


def test_initialize_without_token_halts(monkeypatch):
    monkeypatch.setattr(settings, "MAPBOX_ACCESS_TOKEN", "")
    view = MapView(FakeGeocoder())
    with pytest.raises(GeocodingConfigError):
        view.initialize()
    assert view.state is MapState.UNINITIALIZED


def test_state_machine_rejects_out_of_order_transitions():
    view = MapView(FakeGeocoder(), access_token="test-token")
    with pytest.raises(MapStateError):
        asyncio.run(view.mark_loaded())
    view.initialize()
    assert view.state is MapState.STYLE_LOADING
    with pytest.raises(MapStateError):
        view.initialize()


@pytest.mark.asyncio
async def test_render_before_load_is_rejected_and_set_content_is_deferred():
    geocoder = FakeGeocoder()
    view = MapView(geocoder, access_token="test-token")
    view.initialize()
    contents = [_content("c1", "Les Misérables", [_city("Paris", "FR")])]

    with pytest.raises(MapStateError):
        await view.render(contents)

    await view.set_content(contents)
    assert view.markers == ()
    assert geocoder.calls == []

    await view.mark_loaded()
    assert view.state is MapState.LOADED
    assert [marker.city_name for marker in view.markers] == ["Paris"]


@pytest.mark.asyncio
async def test_render_places_one_marker_per_resolved_city_and_highlights_countries():
    view = await _loaded_view()
    contents = [
        _content("c1", "Les Misérables", [_city("Paris", "FR"), _city("Lyon", "FR")]),
        _content("c2", "Kyoto Stories", [_city("Kyoto", "JP")], content_type="podcast"),
    ]

    markers = await view.render(contents)

    assert len(markers) == 3
    assert {marker.popup_text for marker in markers} == {
        "Paris - Les Misérables",
        "Lyon - Les Misérables",
        "Kyoto - Kyoto Stories",
    }
    assert view.highlighted_countries == highlighted_country_codes(contents) == frozenset({"FR", "JP"})
    assert view.pending == 0

    payload = view.to_feature_collection()
    assert payload["type"] == "FeatureCollection"
    assert payload["highlighted_countries"] == ["FR", "JP"]
    assert payload["state"] == "loaded"
    kyoto = next(feature for feature in payload["features"] if feature["properties"]["city"] == "Kyoto")
    assert kyoto["geometry"]["coordinates"] == [135.77, 35.01]
    assert kyoto["properties"]["content_type"] == "podcast"


@pytest.mark.asyncio
async def test_unresolvable_city_is_skipped_without_aborting_batch():
    view = await _loaded_view()
    contents = [_content("c1", "Myths", [_city("Atlantis", "GR"), _city("Paris", "FR")])]

    markers = await view.render(contents)

    assert [marker.city_name for marker in markers] == ["Paris"]
    assert view.unresolved == (("Atlantis", "GR"),)
    # Highlights follow attached cities, resolved or not.
    assert view.highlighted_countries == frozenset({"FR", "GR"})


@pytest.mark.asyncio
async def test_geocoder_errors_do_not_abort_batch():
    class FlakyGeocoder(FakeGeocoder):
        async def geocode_city(self, name, country_code):
            if name == "Lyon":
                raise RuntimeError("boom")
            return await super().geocode_city(name, country_code)

    view = await _loaded_view(FlakyGeocoder())
    markers = await view.render([_content("c1", "Rivers", [_city("Lyon", "FR"), _city("Paris", "FR")])])
    assert [marker.city_name for marker in markers] == ["Paris"]


@pytest.mark.asyncio
async def test_stored_coordinates_skip_geocoder():
    geocoder = FakeGeocoder(table={})
    view = await _loaded_view(geocoder)
    markers = await view.render(
        [_content("c1", "Offline", [_city("Reykjavik", "IS", longitude=-21.94, latitude=64.15)])]
    )
    assert geocoder.calls == []
    assert (markers[0].longitude, markers[0].latitude) == (-21.94, 64.15)


@pytest.mark.asyncio
async def test_pending_counts_outstanding_lookups_and_new_render_cancels_old():
    gate = asyncio.Event()
    geocoder = FakeGeocoder(gate=gate)
    view = await _loaded_view(geocoder, concurrency=2)
    slow = [_content("c1", "Slow", [_city("Paris", "FR"), _city("Lyon", "FR"), _city("Kyoto", "JP")])]

    first = asyncio.create_task(view.render(slow))
    for _ in range(5):
        await asyncio.sleep(0)
    assert view.pending == 3
    assert len(geocoder.calls) == 2

    geocoder.gate = None
    second = await view.render([_content("c2", "Fast", [_city("Kyoto", "JP")])])

    assert await first is None
    assert [marker.content_id for marker in second] == ["c2"]
    assert [marker.content_id for marker in view.markers] == ["c2"]
    assert view.highlighted_countries == frozenset({"JP"})
    assert view.pending == 0


@pytest.mark.asyncio
async def test_close_cancels_in_flight_render():
    gate = asyncio.Event()
    view = await _loaded_view(FakeGeocoder(gate=gate))
    render = asyncio.create_task(view.render([_content("c1", "Held", [_city("Paris", "FR")])]))
    for _ in range(5):
        await asyncio.sleep(0)

    await view.close()

    assert await render is None
    assert view.markers == ()
    assert view.state is MapState.UNINITIALIZED
    assert view.pending == 0


@pytest.mark.asyncio
async def test_click_and_hover_callbacks_only_fire_for_highlighted_countries():
    clicked_markers = []
    clicked_countries = []
    hovered = []
    view = await _loaded_view(
        on_marker_click=lambda content_type, content: clicked_markers.append((content_type, content.id)),
        on_country_click=clicked_countries.append,
        on_country_hover=hovered.append,
    )
    markers = await view.render([_content("c1", "Les Misérables", [_city("Paris", "FR")])])

    assert view.click_marker(markers[0]) is True
    assert clicked_markers == [("book", "c1")]

    assert view.click_country("fr") is True
    assert view.click_country("DE") is False
    assert clicked_countries == ["FR"]

    assert view.hover_country("FR") is True
    assert view.hovered_country == "FR"
    assert view.hover_country("JP") is False
    assert view.hovered_country is None
    assert hovered == ["FR"]


def test_filter_contents_applies_type_toggles_and_owner_filter():
    contents = [
        _content("b1", "Book", [], content_type="book"),
        _content("p1", "Podcast", [], content_type="podcast"),
        _content("a1", "Article", [], content_type="article", user_id="reader-2"),
    ]

    assert [item.id for item in filter_contents(contents)] == ["b1", "p1", "a1"]
    assert [item.id for item in filter_contents(contents, show_books=False)] == ["p1", "a1"]
    assert [item.id for item in filter_contents(contents, show_podcasts=False)] == ["b1", "a1"]
    assert [item.id for item in filter_contents(contents, only_user_id="reader-1")] == ["b1", "p1"]
