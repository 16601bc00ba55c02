"""Mapbox geocoding client used for location search and marker placement."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx
from fastapi import HTTPException, Request

from config import require_mapbox_access_token, settings
from schemas.content import CityOut, CountryOut

logger = logging.getLogger(__name__)

Coordinates = Tuple[float, float]  # (longitude, latitude), Mapbox order


class GeocodingConfigError(ValueError):
    """Raised when the geocoder has no access token."""


class GeocodingRequestError(RuntimeError):
    """Raised when the geocoding API call fails or returns a non-2xx status."""


@dataclass
class LocationSearchResult:
    countries: List[CountryOut] = field(default_factory=list)
    cities: List[CityOut] = field(default_factory=list)


class GeocodeCache:
    """City name + country code to coordinate memo owned by one geocoder."""

    def __init__(self, entries: Optional[Dict[Tuple[str, str], Coordinates]] = None):
        self._entries: Dict[Tuple[str, str], Coordinates] = entries if entries is not None else {}

    @staticmethod
    def key(city_name: str, country_code: str) -> Tuple[str, str]:
        return (str(city_name or "").strip().casefold(), str(country_code or "").strip().upper())

    def get(self, city_name: str, country_code: str) -> Optional[Coordinates]:
        return self._entries.get(self.key(city_name, country_code))

    def set(self, city_name: str, country_code: str, coordinates: Coordinates) -> None:
        self._entries[self.key(city_name, country_code)] = coordinates

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, item: Tuple[str, str]) -> bool:
        return self.key(*item) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _redact(url: str, token: str) -> str:
    return url.replace(token, "TOKEN_HIDDEN") if token else url


def _country_context(feature: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for entry in feature.get("context") or []:
        if str(entry.get("id", "")).startswith("country."):
            return entry
    return None


def _context_text(feature: Dict[str, Any], prefix: str) -> Optional[str]:
    for entry in feature.get("context") or []:
        if str(entry.get("id", "")).startswith(prefix):
            return entry.get("text") or None
    return None


def _center(feature: Dict[str, Any]) -> Optional[Coordinates]:
    center = feature.get("center")
    if not isinstance(center, (list, tuple)) or len(center) < 2:
        return None
    try:
        return float(center[0]), float(center[1])
    except (TypeError, ValueError):
        return None


def parse_country_feature(feature: Dict[str, Any]) -> Optional[CountryOut]:
    short_code = (feature.get("properties") or {}).get("short_code")
    name = feature.get("text")
    if not short_code or not name:
        return None
    return CountryOut(code=str(short_code).upper(), name=str(name))


def parse_city_feature(
    feature: Dict[str, Any],
    country_code: Optional[str] = None,
    country_name: Optional[str] = None,
) -> Optional[CityOut]:
    """Normalize a ``place`` feature; cities without a country are dropped."""
    context = _country_context(feature)
    if context is not None:
        country_code = context.get("short_code") or country_code
        country_name = context.get("text") or country_name
    if not country_code or not country_name or not feature.get("text"):
        return None

    center = _center(feature)
    bbox = feature.get("bbox")
    return CityOut(
        id=None,
        mapbox_id=feature.get("id"),
        name=str(feature["text"]),
        country_code=str(country_code).upper(),
        country_name=str(country_name),
        place_type="place",
        longitude=center[0] if center else None,
        latitude=center[1] if center else None,
        bbox=",".join(str(value) for value in bbox) if isinstance(bbox, list) else None,
        region=_context_text(feature, "region."),
        district=_context_text(feature, "district."),
        place_formatted=feature.get("place_name"),
    )


class MapboxGeocoder:
    """Resolve free-text place queries against the Mapbox geocoding v5 API.

    A missing access token is a configuration error raised at construction.
    Coordinates resolved by :meth:`geocode_city` are memoized in the
    injected :class:`GeocodeCache`; only successful lookups are cached.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        *,
        cache: Optional[GeocodeCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        if access_token is None:
            try:
                access_token = require_mapbox_access_token()
            except ValueError as exc:
                raise GeocodingConfigError(str(exc)) from exc
        access_token = (access_token or "").strip()
        if not access_token:
            raise GeocodingConfigError("MAPBOX_ACCESS_TOKEN is not configured")

        self.access_token = access_token
        self.cache = cache if cache is not None else GeocodeCache()
        self.base_url = (base_url or settings.MAPBOX_GEOCODING_URL).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.GEOCODING_TIMEOUT_SECONDS
        )

    async def __aenter__(self) -> "MapboxGeocoder":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _query(self, text: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/{quote(text, safe='')}.json"
        query = {key: value for key, value in params.items() if value is not None}
        query["access_token"] = self.access_token
        try:
            response = await self._client.get(url, params=query)
        except httpx.HTTPError as exc:
            logger.warning("Mapbox request failed url=%s: %s", url, exc)
            raise GeocodingRequestError(f"Mapbox request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "Mapbox error response url=%s status=%s body=%s",
                _redact(str(response.url), self.access_token),
                response.status_code,
                response.text[:200],
            )
            raise GeocodingRequestError(f"Mapbox request failed with status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeocodingRequestError("Mapbox returned invalid JSON") from exc
        features = payload.get("features") if isinstance(payload, dict) else None
        return features if isinstance(features, list) else []

    async def search_locations(
        self,
        query: str,
        types: Sequence[str] = ("country", "place"),
        limit: Optional[int] = None,
        country: Optional[str] = None,
    ) -> LocationSearchResult:
        """Search countries and cities matching ``query``, optionally scoped to one country."""
        text = str(query or "").strip()
        if not text:
            return LocationSearchResult()

        features = await self._query(
            text,
            {
                "types": ",".join(types),
                "limit": limit or settings.GEOCODING_SEARCH_LIMIT,
                "country": country.lower() if country else None,
            },
        )
        result = LocationSearchResult()
        for feature in features:
            place_types = feature.get("place_type") or []
            if "country" in place_types:
                country_out = parse_country_feature(feature)
                if country_out:
                    result.countries.append(country_out)
            elif "place" in place_types:
                city = parse_city_feature(feature)
                if city:
                    result.cities.append(city)

        logger.info(
            "Mapbox search query=%r countries=%s cities=%s",
            text,
            len(result.countries),
            len(result.cities),
        )
        return result

    async def get_all_countries(self, limit: int = 200) -> List[CountryOut]:
        features = await self._query("", {"types": "country", "limit": limit})
        countries = [parse_country_feature(feature) for feature in features]
        return [country for country in countries if country]

    async def get_cities_by_country(self, country_code: str, limit: Optional[int] = None) -> List[CityOut]:
        """Return notable cities of a country; empty when the country is not found."""
        code = str(country_code or "").strip().upper()
        if not code:
            return []
        features = await self._query(
            code,
            {"types": "country,place", "limit": limit or settings.GEOCODING_CITY_LIMIT},
        )
        country_feature = next(
            (
                feature
                for feature in features
                if "country" in (feature.get("place_type") or [])
                and str((feature.get("properties") or {}).get("short_code", "")).upper() == code
            ),
            None,
        )
        if country_feature is None:
            logger.info("Mapbox country lookup found no country for code=%s", code)
            return []

        country_name = country_feature.get("text")
        cities: List[CityOut] = []
        for feature in features:
            if "place" not in (feature.get("place_type") or []):
                continue
            city = parse_city_feature(feature, country_code=code, country_name=country_name)
            if city and city.country_code == code:
                cities.append(city)
        return cities

    async def get_cities_by_country_and_query(
        self,
        country_code: str,
        query: str,
        limit: Optional[int] = None,
    ) -> List[CityOut]:
        code = str(country_code or "").strip().upper()
        text = str(query or "").strip()
        if not code or not text:
            return []
        features = await self._query(
            text,
            {
                "types": "place",
                "country": code.lower(),
                "limit": limit or settings.GEOCODING_SEARCH_LIMIT,
            },
        )
        cities = [parse_city_feature(feature) for feature in features if "place" in (feature.get("place_type") or [])]
        return [city for city in cities if city]

    async def geocode_city(self, city_name: str, country_code: str) -> Optional[Coordinates]:
        """Resolve a city to ``(longitude, latitude)``; ``None`` when it cannot be resolved."""
        cached = self.cache.get(city_name, country_code)
        if cached is not None:
            return cached

        name = str(city_name or "").strip()
        if not name:
            return None
        try:
            features = await self._query(
                name,
                {
                    "types": "place",
                    "country": str(country_code or "").strip().lower() or None,
                    "limit": 1,
                },
            )
        except GeocodingRequestError as exc:
            logger.warning("Geocoding failed for %s, %s: %s", name, country_code, exc)
            return None

        for feature in features:
            center = _center(feature)
            if center is not None:
                self.cache.set(name, country_code, center)
                return center

        logger.warning("No coordinates found for city %s, %s", name, country_code)
        return None


def build_geocoder() -> Optional[MapboxGeocoder]:
    """Build the app-wide geocoder, or ``None`` when no token is configured."""
    try:
        return MapboxGeocoder()
    except GeocodingConfigError as exc:
        logger.error("Geocoder disabled: %s", exc)
        return None


def get_geocoder(request: Request) -> MapboxGeocoder:
    """FastAPI dependency returning the shared geocoder or failing with 503."""
    geocoder = getattr(request.app.state, "geocoder", None)
    if geocoder is None:
        geocoder = build_geocoder()
        if geocoder is None:
            raise HTTPException(status_code=503, detail="Geocoding is not configured (MAPBOX_ACCESS_TOKEN missing).")
        request.app.state.geocoder = geocoder
    return geocoder
