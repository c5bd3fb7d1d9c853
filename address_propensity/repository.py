"""Natural-key persistence for properties and propensity scores.

Repositories convert between the domain records in schemas.py and the rows
in models.py. They run inside the caller's session and never commit; use
`transaction()` to commit a unit of work.

Every storage failure surfaces as RepositoryError. A lookup that finds
nothing returns None.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PropensityError, RepositoryError
from .models import PropensityRecord, PropertyRecord, utcnow
from .schemas import (
    Address,
    AddressLine,
    AssessorParcelNumber,
    GeoCoordinate,
    LandUseType,
    PropensityScore,
    Property,
    PropertyPropensityScore,
    SecondaryAddressLine,
    StreetDirection,
    ZipOrPostalCode,
)

logger = logging.getLogger(__name__)


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit on success; roll back and re-raise on any failure."""
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise RepositoryError(f"transaction rolled back: {e}") from e
    except Exception:
        session.rollback()
        raise


# =============================================================================
# Row <-> domain conversion
# =============================================================================


def address_from_record(record: PropertyRecord) -> Address:
    secondary_line = None
    if record.secondary_designator and record.secondary_number:
        secondary_line = SecondaryAddressLine(
            designator=record.secondary_designator, number=record.secondary_number
        )
    return Address.in_usa(
        AddressLine(
            street_number=record.street_number,
            street_name=record.street_name,
            street_suffix=record.street_suffix,
            street_direction=StreetDirection.new(
                record.street_pre_direction, record.street_post_direction
            ),
        ),
        secondary_line,
        city=record.city,
        state=record.state_or_region,
        zip_code=ZipOrPostalCode.parse(record.zip_or_postal_code),
    )


def property_from_record(record: PropertyRecord) -> Property:
    geo_coordinate = None
    if record.latitude is not None and record.longitude is not None:
        geo_coordinate = GeoCoordinate(latitude=record.latitude, longitude=record.longitude)
    return Property(
        id=record.id,
        apn=AssessorParcelNumber.parse(record.apn),
        address=address_from_record(record),
        admin_division=record.admin_division,
        geo_coordinate=geo_coordinate,
        land_use_type=LandUseType(record.land_use_type),
        area_sq_ft=record.area_sq_ft,
        nr_bedrooms=record.nr_bedrooms,
        nr_bathrooms=record.nr_bathrooms,
        total_area_sq_ft=record.total_area_sq_ft,
    )


def record_from_property(entity: Property) -> PropertyRecord:
    address = entity.address
    direction = address.address_line.street_direction
    secondary = address.secondary_address_line
    now = utcnow()
    return PropertyRecord(
        apn=str(entity.apn),
        street_number=address.address_line.street_number,
        street_pre_direction=direction.prefix,
        street_name=address.address_line.street_name,
        street_suffix=address.address_line.street_suffix,
        street_post_direction=direction.suffix,
        secondary_designator=secondary.designator if secondary else None,
        secondary_number=secondary.number if secondary else None,
        city=address.city,
        state_or_region=address.state_or_region,
        zip_or_postal_code=str(address.zip_or_postal_code),
        latitude=entity.geo_coordinate.latitude if entity.geo_coordinate else None,
        longitude=entity.geo_coordinate.longitude if entity.geo_coordinate else None,
        admin_division=entity.admin_division,
        land_use_type=entity.land_use_type.value,
        area_sq_ft=entity.area_sq_ft,
        nr_bedrooms=entity.nr_bedrooms,
        nr_bathrooms=entity.nr_bathrooms,
        total_area_sq_ft=entity.total_area_sq_ft,
        created_on=now,
        last_updated_on=now,
    )


def propensity_from_record(record: PropensityRecord) -> PropertyPropensityScore:
    zip_code = None
    if record.zip_or_postal_code is not None:
        zip_code = ZipOrPostalCode.parse(record.zip_or_postal_code)
    return PropertyPropensityScore(
        id=record.id,
        apn=AssessorParcelNumber.parse(record.apn),
        zip_or_postal_code=zip_code,
        score=PropensityScore.new(record.score),
    )


def record_from_propensity(entity: PropertyPropensityScore) -> PropensityRecord:
    now = utcnow()
    return PropensityRecord(
        apn=str(entity.apn),
        zip_or_postal_code=str(entity.zip_or_postal_code) if entity.zip_or_postal_code else None,
        score=int(entity.score),
        created_on=now,
        last_updated_on=now,
    )


# =============================================================================
# Repositories
# =============================================================================


class PropertyRecordRepository:
    """Properties keyed by APN."""

    def __init__(self, session: Session):
        self.session = session

    def find(self, apn: AssessorParcelNumber) -> Property | None:
        try:
            record = self.session.execute(
                select(PropertyRecord).where(PropertyRecord.apn == str(apn))
            ).scalar_one_or_none()
            return property_from_record(record) if record is not None else None
        except (SQLAlchemyError, PropensityError, ValueError) as e:
            raise RepositoryError(f"failed to look up property {apn}: {e}") from e

    def save(self, entity: Property) -> Property:
        """Insert a new property and return it with its assigned id."""
        record = record_from_property(entity)
        try:
            self.session.add(record)
            self.session.flush()
        except SQLAlchemyError as e:
            raise RepositoryError(f"failed to save property {entity.apn}: {e}") from e
        logger.debug(f"saved property {entity.apn} as id {record.id}")
        return entity.model_copy(update={"id": record.id})


class PropertyPropensityScoreRepository:
    """Propensity scores keyed by APN, with ranked lookup by zip code."""

    def __init__(self, session: Session):
        self.session = session

    def find(self, apn: AssessorParcelNumber) -> PropertyPropensityScore | None:
        try:
            record = self.session.execute(
                select(PropensityRecord).where(PropensityRecord.apn == str(apn))
            ).scalar_one_or_none()
            return propensity_from_record(record) if record is not None else None
        except (SQLAlchemyError, PropensityError, ValueError) as e:
            raise RepositoryError(f"failed to look up propensity {apn}: {e}") from e

    def save(self, entity: PropertyPropensityScore) -> PropertyPropensityScore:
        """Insert a new score and return it with its assigned id."""
        record = record_from_propensity(entity)
        try:
            self.session.add(record)
            self.session.flush()
        except SQLAlchemyError as e:
            raise RepositoryError(f"failed to save propensity {entity.apn}: {e}") from e
        logger.debug(f"saved propensity {entity.apn} as id {record.id}")
        return entity.model_copy(update={"id": record.id})

    def find_ranked(
        self, zip_code: ZipOrPostalCode, limit: int
    ) -> list[tuple[PropertyPropensityScore, Address | None]]:
        """Highest scores in a zip code, with the property address when on file.

        Ties on score are broken by APN so the order is stable.
        """
        stmt = (
            select(PropensityRecord, PropertyRecord)
            .outerjoin(PropertyRecord, PropertyRecord.apn == PropensityRecord.apn)
            .where(PropensityRecord.zip_or_postal_code == str(zip_code))
            .order_by(PropensityRecord.score.desc(), PropensityRecord.apn.asc())
            .limit(limit)
        )
        try:
            rows = self.session.execute(stmt).all()
            return [
                (
                    propensity_from_record(propensity),
                    address_from_record(prop) if prop is not None else None,
                )
                for propensity, prop in rows
            ]
        except (SQLAlchemyError, PropensityError, ValueError) as e:
            raise RepositoryError(f"failed to rank propensities for {zip_code}: {e}") from e

