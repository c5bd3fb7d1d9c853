"""SQLAlchemy models for properties and their propensity scores.

Both tables are keyed by a surrogate `id` and carry the canonical APN as a
unique natural key. `propensities.apn` refers to `properties.apn` logically
only: scores may be loaded before, after, or without the property.

Rows are written once by the loader and never updated, so `created_on` and
`last_updated_on` hold the same instant.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PropertyRecord(Base):
    """A residential property, one row per APN."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    apn: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    street_number: Mapped[str] = mapped_column(String(10), nullable=False)
    street_pre_direction: Mapped[str | None] = mapped_column(String(2))
    street_name: Mapped[str] = mapped_column(String(50), nullable=False)
    street_suffix: Mapped[str] = mapped_column(String(20), nullable=False)
    street_post_direction: Mapped[str | None] = mapped_column(String(2))
    secondary_designator: Mapped[str | None] = mapped_column(String(10))
    secondary_number: Mapped[str | None] = mapped_column(String(10))
    city: Mapped[str] = mapped_column(String(50), nullable=False)
    state_or_region: Mapped[str] = mapped_column(String(50), nullable=False)
    zip_or_postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    latitude: Mapped[Decimal | None] = mapped_column(Numeric(8, 6))
    longitude: Mapped[Decimal | None] = mapped_column(Numeric(9, 6))
    admin_division: Mapped[str] = mapped_column(String(50), nullable=False)
    land_use_type: Mapped[str] = mapped_column(String(50), nullable=False)
    area_sq_ft: Mapped[int | None] = mapped_column(Integer)
    nr_bedrooms: Mapped[int | None] = mapped_column(SmallInteger)
    nr_bathrooms: Mapped[Decimal | None] = mapped_column(Numeric(4, 2))
    total_area_sq_ft: Mapped[int | None] = mapped_column(Integer)
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    last_updated_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<PropertyRecord {self.apn}: {self.street_number} {self.street_name}>"


class PropensityRecord(Base):
    """Propensity score for one APN."""

    __tablename__ = "propensities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    apn: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    zip_or_postal_code: Mapped[str | None] = mapped_column(String(20), index=True)
    score: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    created_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    last_updated_on: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<PropensityRecord {self.apn}: {self.score}>"
