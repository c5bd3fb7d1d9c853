"""Pydantic models for raw CSV rows → domain records.

Two vendor extracts are supported: property records and propensity scores.
Each raw row is first read into a Csv*Row model (column aliases, blank cells
as None, typed numerics), then passed through a structural gate
(`validate_fields`), then translated into schemas.Property or
schemas.PropertyPropensityScore.

Translation order matters: the APN is extracted first so a row with an
unusable parcel number fails before any address work is done.
"""

import re
from decimal import Decimal, InvalidOperation

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .classification import LandUseClassifier
from .errors import (
    ErrorKind,
    FieldValidationError,
    MissingScoreError,
    PropensityError,
    TranslationError,
)
from .schemas import (
    Address,
    AddressLine,
    AssessorParcelNumber,
    GeoCoordinate,
    PropensityScore,
    Property,
    PropertyPropensityScore,
    SecondaryAddressLine,
    StreetDirection,
    ZipOrPostalCode,
)

# Loose structural check on the raw column; AssessorParcelNumber is stricter.
RAW_APN_PATTERN = re.compile(r"[\w-]{7,}")


class CsvRow(BaseModel):
    """Base for raw CSV row shapes."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def validate_fields(self) -> list[FieldValidationError]:
        errors = []
        if not RAW_APN_PATTERN.search(self.apn):
            errors.append(
                FieldValidationError("apn", ErrorKind.FORMAT, f"unrecognized APN {self.apn!r}")
            )
        return errors


# =============================================================================
# Property extract
# =============================================================================


class CsvPropertyRow(CsvRow):
    """One row of a property extract."""

    apn: str = Field(validation_alias=AliasChoices("apn", "apn_unformatted"))
    street_number: str = Field(
        validation_alias=AliasChoices("street_number", "primary_number", "house_number")
    )
    street_pre_direction: str | None = None
    street_name: str
    street_suffix: str
    street_post_direction: str | None = None
    secondary_designator: str | None = None
    secondary_number: str | None = None
    city: str
    state_or_region: str = Field(validation_alias=AliasChoices("state_or_region", "state"))
    zip_or_postal_code: str = Field(validation_alias=AliasChoices("zip_or_postal_code", "zip_code"))
    latitude: str | None = None
    longitude: str | None = None
    admin_division: str = Field(validation_alias=AliasChoices("admin_division", "county_name"))
    land_use_type: str = Field(
        validation_alias=AliasChoices("land_use_type", "standardized_land_use_type")
    )
    area_sq_ft: int | None = Field(default=None, ge=0)
    nr_bedrooms: int | None = Field(
        default=None, ge=0, le=255, validation_alias=AliasChoices("nr_bedrooms", "beds_count")
    )
    nr_bathrooms: Decimal | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("nr_bathrooms", "baths")
    )
    total_area_sq_ft: int | None = Field(default=None, ge=0)

    def validate_fields(self) -> list[FieldValidationError]:
        errors = super().validate_fields()
        for name, bound in (("latitude", 90), ("longitude", 180)):
            value = _to_decimal(getattr(self, name))
            if value is not None and not -bound <= value <= bound:
                errors.append(
                    FieldValidationError(
                        name, ErrorKind.RANGE, f"must be between -{bound} and {bound}, got {value}"
                    )
                )
        return errors


def _to_decimal(raw: str | None) -> Decimal | None:
    if raw is None:
        return None
    try:
        value = Decimal(raw)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def extract_address(row: CsvPropertyRow) -> Address:
    address_line = AddressLine(
        street_number=row.street_number,
        street_name=row.street_name,
        street_suffix=row.street_suffix,
        street_direction=StreetDirection.new(row.street_pre_direction, row.street_post_direction),
    )
    secondary_line = None
    if row.secondary_designator and row.secondary_number:
        secondary_line = SecondaryAddressLine(
            designator=row.secondary_designator, number=row.secondary_number
        )
    return Address.in_usa(
        address_line,
        secondary_line,
        city=row.city,
        state=row.state_or_region,
        zip_code=ZipOrPostalCode.parse(row.zip_or_postal_code),
    )


def extract_geo_coordinate(row: CsvPropertyRow) -> GeoCoordinate | None:
    """Coordinate only when both halves parse; otherwise none."""
    latitude = _to_decimal(row.latitude)
    longitude = _to_decimal(row.longitude)
    if latitude is None or longitude is None:
        return None
    return GeoCoordinate(latitude=latitude, longitude=longitude)


def property_from_row(row: CsvPropertyRow, classifier: LandUseClassifier) -> Property:
    """Translate a structurally valid property row into a Property.

    Raises TranslationError wrapping the first value-object failure.
    """
    try:
        apn = AssessorParcelNumber.parse(row.apn)
        return Property(
            apn=apn,
            address=extract_address(row),
            admin_division=row.admin_division,
            geo_coordinate=extract_geo_coordinate(row),
            land_use_type=classifier.classify(row.land_use_type),
            area_sq_ft=row.area_sq_ft,
            nr_bedrooms=row.nr_bedrooms,
            nr_bathrooms=row.nr_bathrooms,
            total_area_sq_ft=row.total_area_sq_ft,
        )
    except (PropensityError, ValueError) as e:
        raise TranslationError(f"property {row.apn!r}: {e}", cause=e) from e


# =============================================================================
# Propensity extract
# =============================================================================


class CsvPropensityRow(CsvRow):
    """One row of a propensity score extract.

    Address columns are carried for completeness; only the APN, zip code and
    score are used.
    """

    apn: str
    street_number: str | None = Field(
        default=None, validation_alias=AliasChoices("street_number", "SitusHouseNbr")
    )
    street_number_suffix: str | None = Field(
        default=None, validation_alias=AliasChoices("street_number_suffix", "SitusHouseNbrSuffix")
    )
    street_pre_direction: str | None = Field(
        default=None, validation_alias=AliasChoices("street_pre_direction", "SitusDirectionLeft")
    )
    street_name: str | None = Field(
        default=None, validation_alias=AliasChoices("street_name", "SitusStreet")
    )
    street_suffix: str | None = Field(
        default=None, validation_alias=AliasChoices("street_suffix", "SitusMode")
    )
    street_post_direction: str | None = Field(
        default=None, validation_alias=AliasChoices("street_post_direction", "SitusDirectionRight")
    )
    secondary_designator: str | None = Field(
        default=None, validation_alias=AliasChoices("secondary_designator", "SitusUnitType")
    )
    secondary_number: str | None = Field(
        default=None, validation_alias=AliasChoices("secondary_number", "SitusUnitNbr")
    )
    city: str | None = Field(default=None, validation_alias=AliasChoices("city", "SitusCity"))
    state_or_region: str | None = Field(
        default=None, validation_alias=AliasChoices("state_or_region", "SitusState")
    )
    zip_or_postal_code: str | None = Field(
        default=None, validation_alias=AliasChoices("zip_or_postal_code", "SitusZIP5")
    )
    propensity_score: int | None = Field(
        default=None,
        validation_alias=AliasChoices("propensity_score", "HomeEquityIntelScore_LineofCredit"),
    )

    @property
    def has_score(self) -> bool:
        return self.propensity_score is not None

    def validate_fields(self) -> list[FieldValidationError]:
        errors = super().validate_fields()
        if self.propensity_score is not None and self.propensity_score < 0:
            errors.append(
                FieldValidationError(
                    "propensity_score",
                    ErrorKind.RANGE,
                    f"must be non-negative, got {self.propensity_score}",
                )
            )
        return errors


def propensity_from_row(row: CsvPropensityRow) -> PropertyPropensityScore:
    """Translate a propensity row into a PropertyPropensityScore.

    Raises MissingScoreError if the row has no score; callers are expected
    to check `has_score` first.
    """
    if not row.has_score:
        raise MissingScoreError(f"no propensity score for APN {row.apn!r}")
    try:
        apn = AssessorParcelNumber.parse(row.apn)
        zip_code = None
        if row.zip_or_postal_code is not None:
            zip_code = ZipOrPostalCode.parse(row.zip_or_postal_code)
        return PropertyPropensityScore(
            apn=apn,
            zip_or_postal_code=zip_code,
            score=PropensityScore.new(row.propensity_score),
        )
    except (PropensityError, ValueError) as e:
        raise TranslationError(f"propensity {row.apn!r}: {e}", cause=e) from e
