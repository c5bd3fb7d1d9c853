"""Pydantic value objects for address propensity data.

Every value object normalizes on construction and is immutable afterwards.
Equality and hashing work on the canonical form, so inputs that differ only
in case or APN hyphenation compare equal once built.

Canonical forms:
- Free text (street parts, city, state, unit designators) is upper-cased.
- Zip codes are exactly five ASCII digits.
- APNs have hyphens removed and are left-padded with zeros to 14 digits.
  The canonical APN joins property records to propensity scores.

Constraint violations raise FieldValidationError naming the field.
"""

import re
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ErrorKind, FieldValidationError
from .formatting import formatter_for_locale

APN_LENGTH = 14
NUMERIC_APN_PATTERN = re.compile(r"[0-9][0-9-]*[0-9]")
ZIP_CODE_PATTERN = re.compile(r"[0-9]{5}")

MIN_PROPENSITY_SCORE = 1
MAX_PROPENSITY_SCORE = 950


class ValueObject(BaseModel):
    """Base for immutable, self-normalizing domain values."""

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Identifiers and codes
# =============================================================================


class ZipOrPostalCode(ValueObject):
    """A US five digit zip code."""

    code: str

    @field_validator("code")
    @classmethod
    def check_code(cls, v: str) -> str:
        if not ZIP_CODE_PATTERN.fullmatch(v):
            raise FieldValidationError(
                "zip_or_postal_code",
                ErrorKind.FORMAT,
                f"only 5 digit US zip codes are supported, got {v!r}",
            )
        return v

    @classmethod
    def parse(cls, raw: str) -> "ZipOrPostalCode":
        return cls(code=raw)

    def __str__(self) -> str:
        return self.code


class AssessorParcelNumber(ValueObject):
    """Assessor parcel number (APN), the natural key of a property.

    Only numeric APNs are supported: the input must contain a run of digits
    and hyphens that starts and ends with a digit. Every hyphen in the input
    is dropped and the remainder is zero-padded on the left to APN_LENGTH
    characters. Text around the digit run is kept, so "APN 12-34" becomes
    "000000APN 1234". The value is all digits only when the input holds
    nothing but digits and hyphens.
    Inputs longer than APN_LENGTH once hyphens are dropped are rejected.

    Canonicalizing an already canonical APN returns the same value.
    """

    value: str

    @field_validator("value")
    @classmethod
    def canonicalize(cls, v: str) -> str:
        v = v.strip()
        if not NUMERIC_APN_PATTERN.search(v):
            raise FieldValidationError(
                "apn", ErrorKind.FORMAT, f"only numeric-based APNs currently supported, got {v!r}"
            )

        reduced = v.replace("-", "")
        if len(reduced) > APN_LENGTH:
            raise FieldValidationError(
                "apn",
                ErrorKind.LENGTH,
                f"up to {APN_LENGTH}-digit APNs (not including '-') are currently supported",
            )
        return reduced.rjust(APN_LENGTH, "0")

    @classmethod
    def parse(cls, raw: str) -> "AssessorParcelNumber":
        return cls(value=raw)

    def __str__(self) -> str:
        return self.value


class CountryCode(ValueObject):
    """ISO 3166 alpha-3 country code with its official name."""

    code: str
    name: str

    @field_validator("code")
    @classmethod
    def check_code(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 3:
            raise FieldValidationError(
                "country_code", ErrorKind.LENGTH, f"ISO 3166 alpha-3 codes are 3 characters, got {v!r}"
            )
        return v

    @field_validator("name")
    @classmethod
    def upper_name(cls, v: str) -> str:
        return v.strip().upper()

    def __str__(self) -> str:
        return self.code


USA = CountryCode(code="USA", name="United States of America")


# =============================================================================
# Address parts
# =============================================================================


class DirectionKind(str, Enum):
    """Which sides of a street name carry a direction token."""

    NONE = "none"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    BOTH = "both"


class StreetDirection(ValueObject):
    """Directional decoration of a street name, e.g. N Main St or Main St SW.

    Formatting only: the tokens are upper-cased but not checked against a
    list of valid directions.
    """

    prefix: str | None = None
    suffix: str | None = None

    @field_validator("prefix", "suffix")
    @classmethod
    def upper_token(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip().upper()

    @classmethod
    def new(cls, prefix: str | None = None, suffix: str | None = None) -> "StreetDirection":
        return cls(prefix=prefix, suffix=suffix)

    @classmethod
    def for_prefix(cls, token: str) -> "StreetDirection":
        return cls(prefix=token)

    @classmethod
    def for_suffix(cls, token: str) -> "StreetDirection":
        return cls(suffix=token)

    @property
    def kind(self) -> DirectionKind:
        if self.prefix and self.suffix:
            return DirectionKind.BOTH
        if self.prefix:
            return DirectionKind.PREFIX
        if self.suffix:
            return DirectionKind.SUFFIX
        return DirectionKind.NONE

    def decorate(self, street_name: str) -> str:
        """Wrap a street name with the direction tokens."""
        kind = self.kind
        if kind is DirectionKind.PREFIX:
            return f"{self.prefix} {street_name}"
        if kind is DirectionKind.SUFFIX:
            return f"{street_name} {self.suffix}"
        if kind is DirectionKind.BOTH:
            return f"{self.prefix} {street_name} {self.suffix}"
        return street_name


def _upper(v: str) -> str:
    return v.strip().upper()


class AddressLine(ValueObject):
    """Primary address line: number, optional direction, street name and suffix."""

    street_number: str
    street_name: str
    street_suffix: str
    street_direction: StreetDirection = Field(default_factory=StreetDirection)

    @field_validator("street_number", "street_name", "street_suffix")
    @classmethod
    def normalize(cls, v: str) -> str:
        return _upper(v)

    def __str__(self) -> str:
        street = self.street_direction.decorate(f"{self.street_name} {self.street_suffix}")
        return f"{self.street_number} {street}"


class SecondaryAddressLine(ValueObject):
    """Secondary address line such as UNIT 7A or APT 2."""

    designator: str
    number: str

    @field_validator("designator", "number")
    @classmethod
    def normalize(cls, v: str) -> str:
        return _upper(v)

    def __str__(self) -> str:
        return f"{self.designator} {self.number}"


class Address(ValueObject):
    """A postal address.

    Display format depends on the locale; only US addresses can be
    formatted (see formatting.py).
    """

    address_line: AddressLine
    secondary_address_line: SecondaryAddressLine | None = None
    city: str
    state_or_region: str
    zip_or_postal_code: ZipOrPostalCode
    locale: CountryCode = USA

    @field_validator("city", "state_or_region")
    @classmethod
    def normalize(cls, v: str) -> str:
        return _upper(v)

    @classmethod
    def in_usa(
        cls,
        address_line: AddressLine,
        secondary_address_line: SecondaryAddressLine | None,
        city: str,
        state: str,
        zip_code: ZipOrPostalCode,
    ) -> "Address":
        return cls(
            address_line=address_line,
            secondary_address_line=secondary_address_line,
            city=city,
            state_or_region=state,
            zip_or_postal_code=zip_code,
            locale=USA,
        )

    def __str__(self) -> str:
        return formatter_for_locale(self.locale.code).format(self)


class GeoCoordinate(ValueObject):
    """Latitude/longitude pair kept as exact decimals."""

    latitude: Decimal
    longitude: Decimal

    def __str__(self) -> str:
        return f"({self.latitude}, {self.longitude})"


# =============================================================================
# Land use and propensity
# =============================================================================


class LandUseType(str, Enum):
    """Residential land-use categories.

    Values are the labels stored in the properties table. Vendor text is
    mapped onto these by classification.LandUseClassifier; there is no
    catch-all member, unrecognized text is an error.
    """

    CONDOMINIUM_UNIT = "CondominiumUnit"
    DUPLEX = "Duplex"
    MOBILE_OR_MANUFACTURED_HOME = "MobileOrManufacturedHome"
    MULTI_FAMILY_DWELLINGS = "MultiFamilyDwellings"
    PLANNED_UNIT_DEVELOPMENT = "PlannedUnitDevelopment"
    QUADRUPLEX = "Quadruplex"
    RURAL_OR_AGRICULTURAL_RESIDENCE = "RuralOrAgriculturalResidence"
    SINGLE_FAMILY_RESIDENTIAL = "SingleFamilyResidential"
    TOWNHOUSE = "Townhouse"
    TRIPLEX = "Triplex"
    VACATION_RESIDENCE = "VacationResidence"


class PropensityScore(ValueObject):
    """A propensity score between 1 and 950 inclusive.

    Zero is rejected even though vendor files declare the score as
    non-negative.
    """

    score: int

    @field_validator("score")
    @classmethod
    def check_range(cls, v: int) -> int:
        if not MIN_PROPENSITY_SCORE <= v <= MAX_PROPENSITY_SCORE:
            raise FieldValidationError(
                "propensity_score",
                ErrorKind.RANGE,
                f"score must be between {MIN_PROPENSITY_SCORE} and {MAX_PROPENSITY_SCORE}, got {v}",
            )
        return v

    @classmethod
    def new(cls, score: int) -> "PropensityScore":
        return cls(score=score)

    def __int__(self) -> int:
        return self.score


# =============================================================================
# Entities
# =============================================================================


class Property(ValueObject):
    """A residential property, identified by its APN.

    `id` is the surrogate key assigned when the record is stored.
    """

    id: int | None = None
    apn: AssessorParcelNumber
    address: Address
    admin_division: str
    geo_coordinate: GeoCoordinate | None = None
    land_use_type: LandUseType
    area_sq_ft: int | None = None
    nr_bedrooms: int | None = None
    nr_bathrooms: Decimal | None = None
    total_area_sq_ft: int | None = None

    def __repr__(self) -> str:
        return f"<Property {self.apn}: {self.address}>"


class PropertyPropensityScore(ValueObject):
    """The propensity score of one property, keyed by APN.

    The property itself need not be on file; the APN is a logical link only.
    """

    id: int | None = None
    apn: AssessorParcelNumber
    zip_or_postal_code: ZipOrPostalCode | None = None
    score: PropensityScore

    @classmethod
    def for_property(cls, record: Property, score: PropensityScore) -> "PropertyPropensityScore":
        return cls(
            apn=record.apn,
            zip_or_postal_code=record.address.zip_or_postal_code,
            score=score,
        )

    def __repr__(self) -> str:
        return f"<PropertyPropensityScore {self.apn}: {self.score.score}>"
