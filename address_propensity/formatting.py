"""Locale-dependent address display.

Only the US layout is implemented:

    3112 N BONNIE BROOK LN UNIT 7A, PLANO, TX 75075, USA
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol

from .errors import UnsupportedLocaleError

if TYPE_CHECKING:
    from .schemas import Address


class AddressFormatter(Protocol):
    def format(self, address: "Address") -> str: ...


class UsAddressFormatter:
    """Single-line US postal layout."""

    def format(self, address: "Address") -> str:
        lines = str(address.address_line)
        if address.secondary_address_line is not None:
            lines = f"{lines} {address.secondary_address_line}"
        return (
            f"{lines}, {address.city}, {address.state_or_region} "
            f"{address.zip_or_postal_code}, {address.locale.code}"
        )


def default_formatters() -> dict[str, AddressFormatter]:
    """Formatters keyed by ISO 3166 alpha-3 country code."""
    return {"USA": UsAddressFormatter()}


def formatter_for_locale(
    country_code: str, formatters: Mapping[str, AddressFormatter] | None = None
) -> AddressFormatter:
    if formatters is None:
        formatters = default_formatters()
    try:
        return formatters[country_code.upper()]
    except KeyError:
        raise UnsupportedLocaleError(f"no address format for locale {country_code!r}") from None
