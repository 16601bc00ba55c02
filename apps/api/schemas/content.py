"""Content, location and profile schemas.

Inputs are tagged variants discriminated on ``type`` so a submission is
validated against the fields of its own kind before it reaches the data layer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.content import ContentStatus, ContentType


def _clean_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class CityInput(BaseModel):
    """City reference submitted with a content item.

    Either ``id`` of an existing city, or ``name`` plus a country reference
    (``country_id``, or ``country_code`` with ``country_name`` for countries
    that are not stored yet).
    """

    id: Optional[str] = None
    name: str = Field(min_length=1)
    country_id: Optional[str] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    mapbox_id: Optional[str] = None
    place_type: Optional[str] = None
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    bbox: Optional[str] = None
    region: Optional[str] = None
    district: Optional[str] = None
    place_formatted: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("City name must not be blank.")
        return text

    @field_validator("country_code")
    @classmethod
    def _upper_code(cls, value: Optional[str]) -> Optional[str]:
        text = _clean_optional_text(value)
        return text.upper() if text else None


class _ContentInputBase(BaseModel):
    title: str = Field(min_length=1)
    subtitle: Optional[str] = None
    orig_title: Optional[str] = None
    description: Optional[str] = None
    cover_image_url: Optional[str] = None
    url: Optional[str] = None
    uuid: Optional[str] = None
    api_url: Optional[str] = None
    category: Optional[str] = None
    parent_uuid: Optional[str] = None
    display_title: Optional[str] = None
    # None keeps existing associations on update; a list (even empty) replaces them.
    cities: Optional[List[CityInput]] = None
    external_resources: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("Title must not be blank.")
        return text

    def content_fields(self) -> dict:
        """Column values for the contents row."""
        return self.model_dump(exclude={"type", "cities", "external_resources", "audio_url"})

    def resource_urls(self) -> Optional[List[str]]:
        if self.external_resources is None:
            return None
        return [url.strip() for url in self.external_resources if url and url.strip()]


class BookInput(_ContentInputBase):
    type: Literal["book"] = ContentType.BOOK.value
    author: Optional[List[str]] = None
    translator: Optional[List[str]] = None
    language: Optional[List[str]] = None
    pub_house: Optional[str] = None
    pub_year: Optional[int] = None
    pub_month: Optional[int] = Field(default=None, ge=1, le=12)
    binding: Optional[str] = None
    price: Optional[str] = None
    pages: Optional[int] = Field(default=None, ge=0)
    series: Optional[str] = None
    imprint: Optional[str] = None
    isbn: Optional[str] = None

    @field_validator("author", "translator", "language", mode="before")
    @classmethod
    def _listify(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        names = [str(item).strip() for item in value if str(item or "").strip()]
        return names or None


class PodcastInput(_ContentInputBase):
    type: Literal["podcast"] = ContentType.PODCAST.value
    audio_url: Optional[str] = None

    def resource_urls(self) -> Optional[List[str]]:
        audio_url = _clean_optional_text(self.audio_url)
        if audio_url:
            extra = super().resource_urls() or []
            return [audio_url] + [url for url in extra if url != audio_url]
        return super().resource_urls()


class ArticleInput(_ContentInputBase):
    type: Literal["article"] = ContentType.ARTICLE.value


class VideoInput(_ContentInputBase):
    type: Literal["video"] = ContentType.VIDEO.value


ContentVariant = Union[BookInput, PodcastInput, ArticleInput, VideoInput]
ContentInput = Annotated[ContentVariant, Field(discriminator="type")]


class CountryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    code: str
    name: str


class CityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    name: str
    country_id: Optional[str] = None
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    mapbox_id: Optional[str] = None
    place_type: Optional[str] = None
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    bbox: Optional[str] = None
    region: Optional[str] = None
    district: Optional[str] = None
    place_formatted: Optional[str] = None


class ExternalResourceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str


class ContentOut(BaseModel):
    id: str
    user_id: str
    type: ContentType
    status: ContentStatus = ContentStatus.ACTIVE
    title: str
    subtitle: Optional[str] = None
    orig_title: Optional[str] = None
    description: Optional[str] = None
    cover_image_url: Optional[str] = None
    url: Optional[str] = None
    uuid: Optional[str] = None
    api_url: Optional[str] = None
    category: Optional[str] = None
    parent_uuid: Optional[str] = None
    display_title: Optional[str] = None
    author: Optional[List[str]] = None
    translator: Optional[List[str]] = None
    language: Optional[List[str]] = None
    pub_house: Optional[str] = None
    pub_year: Optional[int] = None
    pub_month: Optional[int] = None
    binding: Optional[str] = None
    price: Optional[str] = None
    pages: Optional[int] = None
    series: Optional[str] = None
    imprint: Optional[str] = None
    isbn: Optional[str] = None
    cities: List[CityOut] = []
    countries: List[CountryOut] = []
    external_resources: List[ExternalResourceOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookOut(BaseModel):
    """Flattened book view kept for older clients."""

    id: str
    user_id: str
    title: str
    author: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    cover_url: Optional[str] = None
    cities: List[CityOut] = []
    countries: List[CountryOut] = []
    status: ContentStatus = ContentStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PodcastOut(BaseModel):
    """Flattened podcast view kept for older clients."""

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    cover_url: Optional[str] = None
    audio_url: Optional[str] = None
    cities: List[CityOut] = []
    countries: List[CountryOut] = []
    status: ContentStatus = ContentStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(default=None, max_length=64)
    full_name: Optional[str] = Field(default=None, max_length=128)
    avatar_url: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=2000)
    website: Optional[str] = None
