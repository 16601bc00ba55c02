"""Globe map view: marker placement and country highlighting for content."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from config import require_mapbox_access_token, settings
from schemas.content import CityOut, ContentOut
from services.geocoding import Coordinates, GeocodingConfigError, MapboxGeocoder

logger = logging.getLogger(__name__)

MarkerClickHandler = Callable[[str, ContentOut], Any]
CountryHandler = Callable[[str], Any]


class MapState(str, Enum):
    UNINITIALIZED = "uninitialized"
    STYLE_LOADING = "style_loading"
    LOADED = "loaded"


class MapStateError(RuntimeError):
    """Raised on an operation the current map lifecycle state does not allow."""


@dataclass(frozen=True)
class Marker:
    content_id: str
    content_type: str
    title: str
    city_name: str
    country_code: Optional[str]
    longitude: float
    latitude: float

    @property
    def popup_text(self) -> str:
        return f"{self.city_name} - {self.title}"

    def to_feature(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [self.longitude, self.latitude]},
            "properties": {
                "content_id": self.content_id,
                "content_type": self.content_type,
                "title": self.title,
                "city": self.city_name,
                "country_code": self.country_code,
                "popup": self.popup_text,
            },
        }


def highlighted_country_codes(contents: Iterable[ContentOut]) -> FrozenSet[str]:
    """Country codes reachable from the cities of the given content."""
    return frozenset(
        city.country_code.upper()
        for content in contents
        for city in content.cities
        if city.country_code
    )


def filter_contents(
    contents: Sequence[ContentOut],
    show_books: bool = True,
    show_podcasts: bool = True,
    only_user_id: Optional[str] = None,
) -> List[ContentOut]:
    """Apply the item filter: type toggles for books/podcasts and "my items only"."""
    hidden_types = set()
    if not show_books:
        hidden_types.add("book")
    if not show_podcasts:
        hidden_types.add("podcast")

    visible = []
    for content in contents:
        content_type = getattr(content.type, "value", content.type)
        if content_type in hidden_types:
            continue
        if only_user_id and content.user_id != only_user_id:
            continue
        visible.append(content)
    return visible


class MapView:
    """Marker/highlight state for a globe map.

    Lifecycle is ``uninitialized -> style_loading -> loaded``. Rendering is only
    allowed once loaded; content set earlier is rendered on :meth:`mark_loaded`.
    City coordinates are resolved concurrently (bounded by ``concurrency``) and
    ``pending`` counts the resolutions still outstanding. A new render cancels
    the one in flight, and a cancelled render never places its markers.
    """

    def __init__(
        self,
        geocoder: Optional[MapboxGeocoder] = None,
        *,
        access_token: Optional[str] = None,
        concurrency: Optional[int] = None,
        style_url: Optional[str] = None,
        on_marker_click: Optional[MarkerClickHandler] = None,
        on_country_click: Optional[CountryHandler] = None,
        on_country_hover: Optional[CountryHandler] = None,
    ):
        self.geocoder = geocoder
        self.access_token = access_token
        self.concurrency = max(int(concurrency or settings.GEOCODING_CONCURRENCY), 1)
        self.style_url = style_url or settings.MAPBOX_STYLE_URL
        self.on_marker_click = on_marker_click
        self.on_country_click = on_country_click
        self.on_country_hover = on_country_hover

        self.state = MapState.UNINITIALIZED
        self.pending = 0
        self.markers: Tuple[Marker, ...] = ()
        self.highlighted_countries: FrozenSet[str] = frozenset()
        self.unresolved: Tuple[Tuple[str, str], ...] = ()
        self.hovered_country: Optional[str] = None
        self._contents: Optional[List[ContentOut]] = None
        self._contents_by_id: Dict[str, ContentOut] = {}
        self._render_task: Optional[asyncio.Task] = None

    def initialize(self) -> None:
        """Start loading the map style; a missing access token halts initialization."""
        if self.state is not MapState.UNINITIALIZED:
            raise MapStateError(f"Cannot initialize map in state {self.state.value}.")
        token = (self.access_token or "").strip()
        if not token:
            try:
                token = require_mapbox_access_token()
            except ValueError as exc:
                logger.error("Map initialization halted: %s", exc)
                raise GeocodingConfigError(str(exc)) from exc
        self.access_token = token
        self.state = MapState.STYLE_LOADING

    async def mark_loaded(self) -> None:
        if self.state is not MapState.STYLE_LOADING:
            raise MapStateError(f"Cannot finish loading map in state {self.state.value}.")
        self.state = MapState.LOADED
        if self._contents is not None:
            await self.render(self._contents)

    async def set_content(self, contents: Sequence[ContentOut]) -> None:
        """Record the visible content; render now if loaded, else on load."""
        self._contents = list(contents)
        if self.state is MapState.LOADED:
            await self.render(self._contents)

    async def render(self, contents: Sequence[ContentOut]) -> Optional[Tuple[Marker, ...]]:
        """Replace markers and highlights for ``contents``.

        Returns the placed markers, or ``None`` when a newer render
        superseded this one.
        """
        if self.state is not MapState.LOADED:
            raise MapStateError("Markers can only be placed once the map has loaded.")

        await self._cancel_render()
        self._contents = list(contents)
        task = asyncio.create_task(self._render(self._contents))
        self._render_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            return None
        return task.result()

    async def close(self) -> None:
        """Tear down: cancel in-flight geocoding and drop all map state."""
        await self._cancel_render()
        self.state = MapState.UNINITIALIZED
        self.markers = ()
        self.highlighted_countries = frozenset()
        self.hovered_country = None
        self.pending = 0

    async def _cancel_render(self) -> None:
        task = self._render_task
        self._render_task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    async def _resolve(self, city: CityOut, semaphore: asyncio.Semaphore) -> Optional[Coordinates]:
        try:
            if city.longitude is not None and city.latitude is not None:
                return city.longitude, city.latitude
            if self.geocoder is None or not city.country_code:
                return None
            async with semaphore:
                return await self.geocoder.geocode_city(city.name, city.country_code)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Could not resolve %s, %s: %s", city.name, city.country_code, exc)
            return None
        finally:
            self.pending = max(self.pending - 1, 0)

    async def _render(self, contents: List[ContentOut]) -> Tuple[Marker, ...]:
        self.markers = ()
        self.unresolved = ()
        pairs = [(content, city) for content in contents for city in content.cities]
        self.pending = len(pairs)
        semaphore = asyncio.Semaphore(self.concurrency)
        try:
            resolved = await asyncio.gather(*(self._resolve(city, semaphore) for _, city in pairs))
        finally:
            self.pending = 0

        markers: List[Marker] = []
        unresolved: List[Tuple[str, str]] = []
        for (content, city), coordinates in zip(pairs, resolved):
            if coordinates is None:
                unresolved.append((city.name, city.country_code or ""))
                continue
            markers.append(
                Marker(
                    content_id=content.id,
                    content_type=getattr(content.type, "value", content.type),
                    title=content.title,
                    city_name=city.name,
                    country_code=city.country_code,
                    longitude=coordinates[0],
                    latitude=coordinates[1],
                )
            )

        self.markers = tuple(markers)
        self.unresolved = tuple(unresolved)
        self._contents_by_id = {content.id: content for content in contents}
        self.highlighted_countries = highlighted_country_codes(contents)
        if unresolved:
            logger.info("Map render placed %s markers, %s cities unresolved", len(markers), len(unresolved))
        return self.markers

    def click_marker(self, marker: Marker) -> bool:
        """Hand a marker click to the host with the marker's content item."""
        content = self._contents_by_id.get(marker.content_id)
        if content is None or self.on_marker_click is None:
            return False
        self.on_marker_click(marker.content_type, content)
        return True

    def click_country(self, country_code: str) -> bool:
        code = str(country_code or "").upper()
        if code not in self.highlighted_countries or self.on_country_click is None:
            return False
        self.on_country_click(code)
        return True

    def hover_country(self, country_code: Optional[str]) -> bool:
        code = str(country_code or "").upper()
        if code not in self.highlighted_countries:
            self.hovered_country = None
            return False
        self.hovered_country = code
        if self.on_country_hover is not None:
            self.on_country_hover(code)
        return True

    def to_feature_collection(self) -> Dict[str, Any]:
        return {
            "type": "FeatureCollection",
            "features": [marker.to_feature() for marker in self.markers],
            "highlighted_countries": sorted(self.highlighted_countries),
            "unresolved_cities": [
                {"name": name, "country_code": code or None} for name, code in self.unresolved
            ],
            "pending": self.pending,
            "state": self.state.value,
            "style_url": self.style_url,
        }
