"""Map free-text land-use labels onto LandUseType.

Vendor exports describe land use in prose ("Single Family Residential",
"SFR - Single Residential", "Mobile Home"). The classifier walks an ordered
table of (category, patterns) pairs and returns the first category with a
pattern found anywhere in the label, ignoring case.

Unrecognized labels raise ClassificationError; there is no fallback
category, so the row is rejected.
"""

import logging
import re
from collections.abc import Sequence

from .errors import ClassificationError
from .schemas import LandUseType

logger = logging.getLogger(__name__)

LandUsePatterns = Sequence[tuple[LandUseType, Sequence[str]]]

# Tried top to bottom; first match wins.
DEFAULT_LAND_USE_PATTERNS: LandUsePatterns = (
    (LandUseType.CONDOMINIUM_UNIT, (r"condominium\s*unit",)),
    (LandUseType.DUPLEX, (r"duplex",)),
    (
        LandUseType.MOBILE_OR_MANUFACTURED_HOME,
        (
            r"mobile\s*home",
            r"manufactured\s*home",
            r"mobile\s*or\s*manufactured\s*home",
            r"manufactured\s*or\s*mobile\s*home",
        ),
    ),
    (
        LandUseType.MULTI_FAMILY_DWELLINGS,
        (
            r"multi\s*-?\s*family\s*dwellings?",
            r"multi\s*-?\s*family\s*residential",
            r"multi\s*residential",
        ),
    ),
    (
        LandUseType.PLANNED_UNIT_DEVELOPMENT,
        (r"planned\s*unit\s*development", r"planned\s*development"),
    ),
    (LandUseType.QUADRUPLEX, (r"quadruplex",)),
    (
        LandUseType.RURAL_OR_AGRICULTURAL_RESIDENCE,
        (
            r"rural\s*or\s*agricultural\s*residence",
            r"rural\s*residence",
            r"agricultural\s*residence",
        ),
    ),
    (
        LandUseType.SINGLE_FAMILY_RESIDENTIAL,
        (r"single\s*family\s*residential", r"single\s*residential"),
    ),
    (LandUseType.TOWNHOUSE, (r"townhouse",)),
    (LandUseType.TRIPLEX, (r"triplex",)),
    (LandUseType.VACATION_RESIDENCE, (r"vacation\s*residence",)),
)


class LandUseClassifier:
    """Ordered, case-insensitive pattern matcher for land-use labels."""

    def __init__(self, patterns: LandUsePatterns = DEFAULT_LAND_USE_PATTERNS):
        self._table = [
            (land_use, tuple(re.compile(p, re.IGNORECASE) for p in group))
            for land_use, group in patterns
        ]

    @property
    def categories(self) -> list[LandUseType]:
        return [land_use for land_use, _ in self._table]

    def classify(self, text: str) -> LandUseType:
        for land_use, regexes in self._table:
            if any(regex.search(text) for regex in regexes):
                logger.debug(f"classified land use {text!r} as {land_use.value}")
                return land_use
        raise ClassificationError(text)
