"""Content persistence services (books, podcasts and other tracked media)."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.content import Content, ContentStatus, ContentType
from models.content_location import ContentLocation
from models.external_resource import ExternalResource
from schemas.content import (
    ArticleInput,
    BookInput,
    BookOut,
    CityInput,
    ContentOut,
    CountryOut,
    ExternalResourceOut,
    PodcastInput,
    PodcastOut,
    VideoInput,
)
from services.locations import LocationResolutionError, city_to_out, upsert_city

logger = logging.getLogger(__name__)

INPUT_CLASSES = {
    ContentType.BOOK.value: BookInput,
    ContentType.PODCAST.value: PodcastInput,
    ContentType.ARTICLE.value: ArticleInput,
    ContentType.VIDEO.value: VideoInput,
}
_NON_COLUMN_INPUT_FIELDS = {"type", "cities", "external_resources", "audio_url"}


def content_to_out(content: Content) -> ContentOut:
    """Build the canonical view; countries are derived from attached cities."""
    cities = [city_to_out(location.city) for location in content.locations if location.city is not None]
    countries: List[CountryOut] = []
    seen_codes = set()
    for location in content.locations:
        country = location.city.country if location.city is not None else None
        if country is None or country.code in seen_codes:
            continue
        seen_codes.add(country.code)
        countries.append(CountryOut(id=country.id, code=country.code, name=country.name))

    return ContentOut(
        id=content.id,
        user_id=content.user_id,
        type=content.type,
        status=content.status,
        title=content.title,
        subtitle=content.subtitle,
        orig_title=content.orig_title,
        description=content.description,
        cover_image_url=content.cover_image_url,
        url=content.url,
        uuid=content.uuid,
        api_url=content.api_url,
        category=content.category,
        parent_uuid=content.parent_uuid,
        display_title=content.display_title,
        author=content.author,
        translator=content.translator,
        language=content.language,
        pub_house=content.pub_house,
        pub_year=content.pub_year,
        pub_month=content.pub_month,
        binding=content.binding,
        price=content.price,
        pages=content.pages,
        series=content.series,
        imprint=content.imprint,
        isbn=content.isbn,
        cities=cities,
        countries=countries,
        external_resources=[
            ExternalResourceOut(id=resource.id, url=resource.url) for resource in content.external_resources
        ],
        created_at=content.created_at,
        updated_at=content.updated_at,
    )


def content_to_book(content: ContentOut) -> BookOut:
    return BookOut(
        id=content.id,
        user_id=content.user_id,
        title=content.title,
        author=", ".join(content.author) if content.author else None,
        description=content.description,
        url=content.url,
        cover_url=content.cover_image_url,
        cities=content.cities,
        countries=content.countries,
        status=content.status,
        created_at=content.created_at,
        updated_at=content.updated_at,
    )


def content_to_podcast(content: ContentOut) -> PodcastOut:
    return PodcastOut(
        id=content.id,
        user_id=content.user_id,
        title=content.title,
        description=content.description,
        url=content.url,
        cover_url=content.cover_image_url,
        audio_url=content.external_resources[0].url if content.external_resources else None,
        cities=content.cities,
        countries=content.countries,
        status=content.status,
        created_at=content.created_at,
        updated_at=content.updated_at,
    )


async def _load_content(
    db: AsyncSession,
    user_id: str,
    content_id: str,
    include_deleted: bool = False,
    content_type: Optional[str] = None,
) -> Content:
    query = (
        select(Content)
        .where(Content.id == content_id, Content.user_id == user_id)
        .execution_options(populate_existing=True)
        .limit(1)
    )
    if not include_deleted:
        query = query.where(Content.status == ContentStatus.ACTIVE.value)
    if content_type:
        query = query.where(Content.type == ContentType(content_type).value)
    result = await db.execute(query)
    content = result.scalar_one_or_none()
    if not content:
        # Rows owned by someone else are indistinguishable from missing ones.
        raise HTTPException(status_code=404, detail="Content not found.")
    return content


async def _attach_cities(db: AsyncSession, content_id: str, cities: List[CityInput]) -> int:
    """Associate cities with a content item, skipping any city that fails.

    Each city runs in its own savepoint: country upsert, city upsert and the
    association row either all land or none do.
    """
    attached = 0
    attached_city_ids = set()
    for city in cities:
        try:
            async with db.begin_nested():
                stored_city = await upsert_city(db, city)
                if stored_city.id in attached_city_ids:
                    logger.info("Skipping duplicate city %s for content %s", city.name, content_id)
                    continue
                db.add(ContentLocation(id=str(uuid.uuid4()), content_id=content_id, city_id=stored_city.id))
                await db.flush()
        except (LocationResolutionError, SQLAlchemyError) as exc:
            logger.warning("Skipping city %s for content %s: %s", city.name, content_id, exc)
            continue
        attached_city_ids.add(stored_city.id)
        attached += 1
    return attached


def _add_resources(db: AsyncSession, content_id: str, urls: List[str]) -> None:
    for position, url in enumerate(urls):
        db.add(ExternalResource(id=str(uuid.uuid4()), content_id=content_id, url=url, position=position))


async def list_contents_service(
    user_id: str,
    db: AsyncSession,
    content_type: Optional[str] = None,
) -> List[ContentOut]:
    """List active content of a user, newest first."""
    query = (
        select(Content)
        .where(Content.user_id == user_id, Content.status == ContentStatus.ACTIVE.value)
        .order_by(Content.created_at.desc())
        .execution_options(populate_existing=True)
    )
    if content_type:
        query = query.where(Content.type == ContentType(content_type).value)
    result = await db.execute(query)
    return [content_to_out(content) for content in result.scalars().all()]


async def get_content_service(
    user_id: str,
    content_id: str,
    db: AsyncSession,
    include_deleted: bool = False,
) -> ContentOut:
    content = await _load_content(db, user_id, content_id, include_deleted=include_deleted)
    return content_to_out(content)


async def create_content_service(user_id: str, payload: Any, db: AsyncSession) -> ContentOut:
    """Insert a content row, its resources and as many of its cities as resolve."""
    content = Content(
        id=str(uuid.uuid4()),
        user_id=user_id,
        type=payload.type,
        status=ContentStatus.ACTIVE.value,
        **payload.content_fields(),
    )
    db.add(content)
    _add_resources(db, content.id, payload.resource_urls() or [])
    await db.flush()

    requested = payload.cities or []
    attached = await _attach_cities(db, content.id, requested)
    await db.commit()

    logger.info(
        "content_create user=%s content=%s type=%s cities=%s/%s",
        user_id,
        content.id,
        payload.type,
        attached,
        len(requested),
    )
    return await get_content_service(user_id, content.id, db)


async def update_content_service(
    user_id: str,
    content_id: str,
    payload: Any,
    db: AsyncSession,
) -> ContentOut:
    """Replace a content item's fields; a supplied city list replaces all associations."""
    content = await _load_content(db, user_id, content_id)
    if content.type != payload.type:
        raise HTTPException(
            status_code=422,
            detail=f"Content {content_id} is a {content.type}, not a {payload.type}.",
        )

    for field_name, value in payload.content_fields().items():
        setattr(content, field_name, value)

    urls = payload.resource_urls()
    if urls is not None:
        content.external_resources.clear()
        await db.flush()
        _add_resources(db, content.id, urls)

    attached: Optional[int] = None
    if payload.cities is not None:
        content.locations.clear()
        await db.flush()
        attached = await _attach_cities(db, content.id, payload.cities)
    else:
        await db.flush()

    await db.commit()
    logger.info("content_update user=%s content=%s cities=%s", user_id, content_id, attached)
    return await get_content_service(user_id, content_id, db)


async def patch_content_service(
    user_id: str,
    content_id: str,
    content_type: str,
    changes: Dict[str, Any],
    db: AsyncSession,
) -> ContentOut:
    """Apply only ``changes`` to a stored item of ``content_type``.

    Columns the caller did not send keep their stored values; an item of
    another type is reported as missing.
    """
    content = await _load_content(db, user_id, content_id, content_type=content_type)
    input_class = INPUT_CLASSES[content.type]

    fields: Dict[str, Any] = {
        name: getattr(content, name)
        for name in input_class.model_fields
        if name not in _NON_COLUMN_INPUT_FIELDS
    }
    if "audio_url" in changes and content.type == ContentType.PODCAST.value:
        # The old audio URL sits at position 0; the rest stay attached.
        fields["external_resources"] = [resource.url for resource in content.external_resources[1:]]
    fields.update(changes)

    return await update_content_service(user_id, content_id, input_class(**fields), db)


async def delete_content_service(
    user_id: str,
    content_id: str,
    db: AsyncSession,
    content_type: Optional[str] = None,
) -> Dict[str, str]:
    """Soft-delete: flip status, keep the row and its associations."""
    content = await _load_content(db, user_id, content_id, content_type=content_type)
    content.status = ContentStatus.DELETED.value
    await db.commit()
    logger.info("content_delete user=%s content=%s", user_id, content_id)
    return {"id": content_id, "status": ContentStatus.DELETED.value}


async def list_books_service(user_id: str, db: AsyncSession) -> List[BookOut]:
    contents = await list_contents_service(user_id, db, ContentType.BOOK.value)
    return [content_to_book(content) for content in contents]


async def list_podcasts_service(user_id: str, db: AsyncSession) -> List[PodcastOut]:
    contents = await list_contents_service(user_id, db, ContentType.PODCAST.value)
    return [content_to_podcast(content) for content in contents]
