import httpx
import pytest

from config import settings
from services.geocoding import (
    GeocodeCache,
    GeocodingConfigError,
    GeocodingRequestError,
    MapboxGeocoder,
    build_geocoder,
    parse_city_feature,
)


PARIS_FEATURE = {
    "id": "place.123",
    "place_type": ["place"],
    "text": "Paris",
    "place_name": "Paris, Île-de-France, France",
    "center": [2.35183, 48.85658],
    "bbox": [2.224122, 48.815575, 2.469703, 48.902156],
    "context": [
        {"id": "region.1", "text": "Île-de-France"},
        {"id": "country.8", "short_code": "fr", "text": "France"},
    ],
}

FRANCE_FEATURE = {
    "id": "country.8",
    "place_type": ["country"],
    "text": "France",
    "properties": {"short_code": "fr"},
    "center": [2.0, 47.0],
}


def _geocoder(handler, cache=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MapboxGeocoder("test-token", cache=cache, client=client)


def test_missing_access_token_is_a_configuration_error(monkeypatch):
    monkeypatch.setattr(settings, "MAPBOX_ACCESS_TOKEN", "")
    with pytest.raises(GeocodingConfigError):
        MapboxGeocoder()
    with pytest.raises(GeocodingConfigError):
        MapboxGeocoder("   ")
    assert build_geocoder() is None


def test_parse_city_feature_reads_country_context():
    city = parse_city_feature(PARIS_FEATURE)
    assert city is not None
    assert city.name == "Paris"
    assert city.country_code == "FR"
    assert city.country_name == "France"
    assert city.region == "Île-de-France"
    assert (city.longitude, city.latitude) == (2.35183, 48.85658)
    assert city.bbox.startswith("2.224122,")


def test_parse_city_feature_drops_cities_without_country():
    feature = {key: value for key, value in PARIS_FEATURE.items() if key != "context"}
    assert parse_city_feature(feature) is None


def test_cache_key_ignores_name_case_and_code_case():
    cache = GeocodeCache()
    cache.set("Paris ", "fr", (2.35, 48.85))
    assert cache.get("paris", "FR") == (2.35, 48.85)
    assert ("PARIS", "Fr") in cache
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_geocode_city_sends_scoped_query_and_caches_result():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"features": [PARIS_FEATURE]})

    geocoder = _geocoder(handler)
    first = await geocoder.geocode_city("Paris", "FR")
    second = await geocoder.geocode_city("paris", "fr")
    await geocoder.aclose()

    assert first == (2.35183, 48.85658)
    assert second == first
    assert len(requests) == 1
    request = requests[0]
    assert request.url.path.endswith("/Paris.json")
    assert request.url.params["types"] == "place"
    assert request.url.params["country"] == "fr"
    assert request.url.params["limit"] == "1"
    assert request.url.params["access_token"] == "test-token"


@pytest.mark.asyncio
async def test_geocode_city_returns_none_on_failure_and_does_not_cache():
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(500, json={"message": "upstream down"})

    cache = GeocodeCache()
    geocoder = _geocoder(handler, cache=cache)
    assert await geocoder.geocode_city("Atlantis", "GR") is None
    assert await geocoder.geocode_city("Atlantis", "GR") is None
    await geocoder.aclose()

    assert calls["count"] == 2
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_geocode_city_returns_none_when_nothing_matches():
    geocoder = _geocoder(lambda request: httpx.Response(200, json={"features": []}))
    assert await geocoder.geocode_city("Nowhere", "FR") is None
    await geocoder.aclose()


@pytest.mark.asyncio
async def test_geocode_city_handles_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    geocoder = _geocoder(handler)
    assert await geocoder.geocode_city("Paris", "FR") is None
    await geocoder.aclose()


@pytest.mark.asyncio
async def test_search_locations_splits_countries_and_cities():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["types"] == "country,place"
        return httpx.Response(200, json={"features": [FRANCE_FEATURE, PARIS_FEATURE]})

    geocoder = _geocoder(handler)
    result = await geocoder.search_locations("par")
    await geocoder.aclose()

    assert [country.code for country in result.countries] == ["FR"]
    assert [city.name for city in result.cities] == ["Paris"]


@pytest.mark.asyncio
async def test_search_locations_blank_query_skips_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    geocoder = _geocoder(handler)
    result = await geocoder.search_locations("   ")
    await geocoder.aclose()
    assert result.countries == [] and result.cities == []


@pytest.mark.asyncio
async def test_search_locations_raises_on_error_status():
    geocoder = _geocoder(lambda request: httpx.Response(401, json={"message": "Not Authorized"}))
    with pytest.raises(GeocodingRequestError):
        await geocoder.search_locations("paris")
    await geocoder.aclose()


@pytest.mark.asyncio
async def test_cities_by_country_requires_country_feature():
    lyon = dict(PARIS_FEATURE, id="place.456", text="Lyon", center=[4.83, 45.76])

    geocoder = _geocoder(lambda request: httpx.Response(200, json={"features": [FRANCE_FEATURE, PARIS_FEATURE, lyon]}))
    cities = await geocoder.get_cities_by_country("fr")
    await geocoder.aclose()
    assert [city.name for city in cities] == ["Paris", "Lyon"]

    geocoder = _geocoder(lambda request: httpx.Response(200, json={"features": [PARIS_FEATURE]}))
    assert await geocoder.get_cities_by_country("FR") == []
    await geocoder.aclose()


@pytest.mark.asyncio
async def test_cities_by_country_and_query_scopes_to_country():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={"features": [PARIS_FEATURE]})

    geocoder = _geocoder(handler)
    cities = await geocoder.get_cities_by_country_and_query("FR", "Par")
    await geocoder.aclose()

    assert seen["country"] == "fr"
    assert seen["types"] == "place"
    assert [city.name for city in cities] == ["Paris"]
