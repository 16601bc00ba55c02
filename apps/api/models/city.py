"""City model with optional geocoder metadata."""

import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class City(Base):
    """City that always resolves to exactly one country."""

    __tablename__ = "cities"
    __table_args__ = (UniqueConstraint("name", "country_id", name="uq_cities_name_country"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    country_id = Column(String, ForeignKey("countries.id"), nullable=False, index=True)
    mapbox_id = Column(String, nullable=True, index=True)
    place_type = Column(String, nullable=True)
    longitude = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)
    bbox = Column(String, nullable=True)
    region = Column(String, nullable=True)
    district = Column(String, nullable=True)
    place_formatted = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    country = relationship("Country", back_populates="cities", lazy="joined")
