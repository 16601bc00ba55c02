"""External resource links attached to a content item."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class ExternalResource(Base):
    """Extra URL for a content item (podcast audio, mirrors)."""

    __tablename__ = "external_resources"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    content_id = Column(String, ForeignKey("contents.id"), nullable=False, index=True)
    url = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)  # 0 is a podcast's audio URL
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    content = relationship("Content", back_populates="external_resources")
