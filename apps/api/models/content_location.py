"""Join rows between content items and cities."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class ContentLocation(Base):
    __tablename__ = "content_locations"
    __table_args__ = (UniqueConstraint("content_id", "city_id", name="uq_content_locations_pair"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    content_id = Column(String, ForeignKey("contents.id"), nullable=False, index=True)
    city_id = Column(String, ForeignKey("cities.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    content = relationship("Content", back_populates="locations")
    city = relationship("City", lazy="joined")
