"""Location router: stored countries/cities and Mapbox-backed place search."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from schemas.content import CityOut, CountryOut
from services.geocoding import GeocodingRequestError, MapboxGeocoder, get_geocoder
from services.locations import list_cities_service, list_countries_service

router = APIRouter()


def _upstream_error(exc: GeocodingRequestError) -> HTTPException:
    return HTTPException(status_code=502, detail=str(exc))


@router.get("/countries", response_model=List[CountryOut])
async def list_countries(db: AsyncSession = Depends(get_db)):
    """Countries referenced by any stored city, ordered by name."""
    return await list_countries_service(db)


@router.get("/cities", response_model=List[CityOut])
async def list_cities(
    country_code: Optional[str] = Query(default=None, min_length=2, max_length=3),
    db: AsyncSession = Depends(get_db),
):
    return await list_cities_service(db, country_code)


@router.get("/search")
async def search_locations(
    q: str = Query(..., min_length=2, max_length=256),
    country: Optional[str] = Query(default=None, min_length=2, max_length=3),
    limit: int = Query(default=settings.GEOCODING_SEARCH_LIMIT, ge=1, le=10),
    _rate_limit: None = Depends(rate_limit("location_search", limit=600, window_seconds=3600)),
    _auth: AuthContext = Depends(get_auth_context),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
):
    """Free-text country/city search used by the content forms."""
    try:
        result = await geocoder.search_locations(q, limit=limit, country=country)
    except GeocodingRequestError as exc:
        raise _upstream_error(exc) from exc
    return {"countries": result.countries, "cities": result.cities}


@router.get("/countries/{country_code}/cities", response_model=List[CityOut])
async def search_country_cities(
    country_code: str,
    q: Optional[str] = Query(default=None, max_length=256),
    limit: int = Query(default=settings.GEOCODING_CITY_LIMIT, ge=1, le=50),
    _rate_limit: None = Depends(rate_limit("location_country_cities", limit=600, window_seconds=3600)),
    _auth: AuthContext = Depends(get_auth_context),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
):
    """Notable cities of a country, or those matching ``q`` within it."""
    try:
        if q and q.strip():
            return await geocoder.get_cities_by_country_and_query(country_code, q, limit=limit)
        return await geocoder.get_cities_by_country(country_code, limit=limit)
    except GeocodingRequestError as exc:
        raise _upstream_error(exc) from exc


@router.get("/geocode")
async def geocode_city(
    name: str = Query(..., min_length=1, max_length=256),
    country_code: str = Query(..., min_length=2, max_length=3),
    _rate_limit: None = Depends(rate_limit("location_geocode", limit=1200, window_seconds=3600)),
    _auth: AuthContext = Depends(get_auth_context),
    geocoder: MapboxGeocoder = Depends(get_geocoder),
):
    coordinates = await geocoder.geocode_city(name, country_code)
    if coordinates is None:
        raise HTTPException(status_code=404, detail=f"No coordinates found for {name}, {country_code.upper()}.")
    return {
        "name": name,
        "country_code": country_code.upper(),
        "longitude": coordinates[0],
        "latitude": coordinates[1],
    }
