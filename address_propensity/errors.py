"""Exception hierarchy for address propensity loading and search.

Per-row failures (parse, validation, classification, translation, storage)
are caught by the loader and tallied in the quality report. Only
configuration and infrastructure failures stop a run.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """What kind of constraint a field failed."""

    FORMAT = "format"
    LENGTH = "length"
    RANGE = "range"
    REQUIRED = "required"


class PropensityError(Exception):
    """Base exception for all address propensity failures."""


class ParseError(PropensityError):
    """A raw row could not be read into the expected row shape."""

    def __init__(self, reason: str, index: int | None = None):
        self.reason = reason
        self.index = index
        prefix = f"row {index}: " if index is not None else ""
        super().__init__(f"{prefix}{reason}")


class FieldValidationError(PropensityError):
    """A single field violated a constraint."""

    def __init__(self, field: str, kind: ErrorKind, reason: str):
        self.field = field
        self.kind = kind
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class RowValidationError(FieldValidationError):
    """One or more fields of a raw row failed structural validation."""

    def __init__(self, errors: list[FieldValidationError]):
        self.errors = errors
        first = errors[0]
        super().__init__(first.field, first.kind, "; ".join(str(e) for e in errors))


class ClassificationError(PropensityError):
    """Land-use text matched none of the known categories."""

    def __init__(self, text: str):
        self.text = text
        super().__init__(f"Unrecognized land use type: {text!r}")


class TranslationError(PropensityError):
    """A raw row could not be turned into a domain record."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class RepositoryError(PropensityError):
    """The relational store failed a lookup or write."""


class MissingScoreError(PropensityError):
    """A propensity row carries no score."""


class UnsupportedLocaleError(PropensityError):
    """No address formatter exists for the requested locale."""


class ConfigurationError(PropensityError):
    """Settings could not be loaded or are invalid."""
