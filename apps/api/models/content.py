"""Content model covering books, podcasts and other tracked media."""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentType(str, enum.Enum):
    BOOK = "book"
    PODCAST = "podcast"
    ARTICLE = "article"
    VIDEO = "video"


class ContentStatus(str, enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class Content(Base):
    """User-owned content item; soft-deleted rows keep their associations."""

    __tablename__ = "contents"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False, index=True)  # book, podcast, article, video
    status = Column(String, nullable=False, default=ContentStatus.ACTIVE.value, index=True)
    title = Column(String, nullable=False)
    subtitle = Column(String, nullable=True)
    orig_title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    cover_image_url = Column(String, nullable=True)
    url = Column(String, nullable=True)

    # Catalog-compatible identifiers
    uuid = Column(String, nullable=True)
    api_url = Column(String, nullable=True)
    category = Column(String, nullable=True)
    parent_uuid = Column(String, nullable=True)
    display_title = Column(String, nullable=True)

    # Book fields
    author = Column(JSON, nullable=True)
    translator = Column(JSON, nullable=True)
    language = Column(JSON, nullable=True)
    pub_house = Column(String, nullable=True)
    pub_year = Column(Integer, nullable=True)
    pub_month = Column(Integer, nullable=True)
    binding = Column(String, nullable=True)
    price = Column(String, nullable=True)
    pages = Column(Integer, nullable=True)
    series = Column(String, nullable=True)
    imprint = Column(String, nullable=True)
    isbn = Column(String, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    user = relationship("User", back_populates="contents")
    locations = relationship(
        "ContentLocation", back_populates="content", cascade="all, delete-orphan", lazy="selectin"
    )
    external_resources = relationship(
        "ExternalResource",
        back_populates="content",
        cascade="all, delete-orphan",
        order_by="ExternalResource.position",
        lazy="selectin",
    )
