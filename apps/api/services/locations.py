"""Country/city persistence helpers (upsert by natural key) and lookups."""

from __future__ import annotations

import logging
import re
import uuid
from typing import List, Optional

import pycountry
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.city import City
from models.country import Country
from schemas.content import CityInput, CityOut, CountryOut

logger = logging.getLogger(__name__)

_UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_CITY_METADATA_FIELDS = (
    "mapbox_id",
    "place_type",
    "longitude",
    "latitude",
    "bbox",
    "region",
    "district",
    "place_formatted",
)


class LocationResolutionError(ValueError):
    """Raised when a city reference cannot be tied to a country."""


def is_uuid(value: Optional[str]) -> bool:
    return bool(value) and bool(_UUID_PATTERN.match(str(value)))


def iso_country_name(code: str) -> Optional[str]:
    """Offline ISO 3166 name for an alpha-2/alpha-3 code, or ``None``."""
    field_name = "alpha_2" if len(code) == 2 else "alpha_3"
    try:
        country = pycountry.countries.get(**{field_name: code})
    except LookupError:
        return None
    if country is None:
        return None
    return getattr(country, "common_name", None) or country.name


def country_to_out(country: Country) -> CountryOut:
    return CountryOut(id=country.id, code=country.code, name=country.name)


def city_to_out(city: City) -> CityOut:
    country = city.country
    return CityOut(
        id=city.id,
        name=city.name,
        country_id=city.country_id,
        country_code=country.code if country else None,
        country_name=country.name if country else None,
        mapbox_id=city.mapbox_id,
        place_type=city.place_type,
        longitude=city.longitude,
        latitude=city.latitude,
        bbox=city.bbox,
        region=city.region,
        district=city.district,
        place_formatted=city.place_formatted,
    )


async def upsert_country(db: AsyncSession, code: str, name: Optional[str]) -> Country:
    """Return the country with ``code``, creating it when a name is available."""
    normalized_code = str(code or "").strip().upper()
    if not normalized_code:
        raise LocationResolutionError("Country code is required.")

    result = await db.execute(select(Country).where(Country.code == normalized_code).limit(1))
    country = result.scalar_one_or_none()
    if country:
        return country

    country_name = str(name or "").strip() or iso_country_name(normalized_code)
    if not country_name:
        raise LocationResolutionError(f"Country {normalized_code} is unknown and no name was supplied.")

    country = Country(id=str(uuid.uuid4()), code=normalized_code, name=country_name)
    db.add(country)
    await db.flush()
    logger.info("Created country code=%s name=%s", normalized_code, country_name)
    return country


async def _resolve_country(db: AsyncSession, city: CityInput) -> Country:
    if city.country_id:
        result = await db.execute(select(Country).where(Country.id == city.country_id).limit(1))
        country = result.scalar_one_or_none()
        if country:
            return country
    if city.country_code:
        return await upsert_country(db, city.country_code, city.country_name)
    raise LocationResolutionError(f"City {city.name} has no country reference.")


async def upsert_city(db: AsyncSession, city: CityInput) -> City:
    """Return a stored city for ``city``: by id when it exists, else by (name, country)."""
    if city.id and is_uuid(city.id):
        result = await db.execute(select(City).where(City.id == city.id).limit(1))
        existing = result.scalar_one_or_none()
        if existing:
            return existing

    country = await _resolve_country(db, city)
    result = await db.execute(
        select(City).where(City.name == city.name, City.country_id == country.id).limit(1)
    )
    existing = result.scalar_one_or_none()
    if existing:
        # Fill geocoder metadata the stored row is missing.
        for field_name in _CITY_METADATA_FIELDS:
            value = getattr(city, field_name)
            if value is not None and getattr(existing, field_name) is None:
                setattr(existing, field_name, value)
        return existing

    new_city = City(
        id=str(uuid.uuid4()),
        name=city.name,
        country_id=country.id,
        **{field_name: getattr(city, field_name) for field_name in _CITY_METADATA_FIELDS},
    )
    new_city.country = country
    db.add(new_city)
    await db.flush()
    logger.info("Created city name=%s country=%s", city.name, country.code)
    return new_city


async def list_countries_service(db: AsyncSession) -> List[CountryOut]:
    result = await db.execute(select(Country).order_by(Country.name.asc()))
    return [country_to_out(country) for country in result.scalars().all()]


async def list_cities_service(db: AsyncSession, country_code: Optional[str] = None) -> List[CityOut]:
    query = select(City).join(Country, City.country_id == Country.id).order_by(City.name.asc())
    if country_code:
        query = query.where(Country.code == country_code.strip().upper())
    result = await db.execute(query)
    return [city_to_out(city) for city in result.unique().scalars().all()]
