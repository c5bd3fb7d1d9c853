"""CSV → database ingestion with per-row quality accounting.

Each row ends in exactly one RowOutcome:

    parse ──✗──► SKIPPED_DESERIALIZATION_FAILURE
      │
    (propensity) score present? ──✗──► SKIPPED_MISSING_SCORE
      │
    structural checks ──✗──► SKIPPED_VALIDATION_FAILURE
      │
    translate ──✗──► SKIPPED_DESERIALIZATION_FAILURE
      │
    find by APN ──error──► SKIPPED_DESERIALIZATION_FAILURE (also a lookup failure)
      │        └─found──► SKIPPED_DUPLICATE
      │
    (propensity) property on file? ──no──► noted, save proceeds
      │
    save + commit ──✗──► SKIPPED_SAVE_FAILURE
      │
    SAVED

Rows are processed one at a time and each save commits on its own, so a
failure loses only that row. Loading the same file twice saves nothing the
second time.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from enum import Enum

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from .classification import LandUseClassifier
from .errors import ParseError, RepositoryError, RowValidationError, TranslationError
from .reader import RawRow
from .repository import PropertyPropensityScoreRepository, PropertyRecordRepository, transaction
from .schemas import Property, PropertyPropensityScore
from .transformations import (
    CsvPropensityRow,
    CsvPropertyRow,
    CsvRow,
    propensity_from_row,
    property_from_row,
)

logger = logging.getLogger(__name__)

DEFAULT_SKIPPED_SAMPLE_SIZE = 10


class RowOutcome(str, Enum):
    """Terminal state of one ingested row."""

    SAVED = "saved"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_MISSING_SCORE = "skipped_missing_score"
    SKIPPED_DESERIALIZATION_FAILURE = "skipped_deserialization_failure"
    SKIPPED_VALIDATION_FAILURE = "skipped_validation_failure"
    SKIPPED_SAVE_FAILURE = "skipped_save_failure"


class RowFailure(BaseModel):
    """A skipped row and why."""

    index: int
    error: str


class SaveFailure(RowFailure):
    """A translated row the store refused; the raw row is kept for reloading."""

    row: RawRow = Field(default_factory=dict)


class QualityReport(BaseModel):
    """Outcome tallies of one load."""

    source: str = ""
    outcomes: dict[RowOutcome, int] = Field(default_factory=dict)
    deserialization_failures: list[RowFailure] = Field(default_factory=list)
    validation_failures: list[RowFailure] = Field(default_factory=list)
    lookup_failures: list[RowFailure] = Field(default_factory=list)
    save_failures: list[SaveFailure] = Field(default_factory=list)
    missing_scores: list[int] = Field(default_factory=list)
    duplicates: list[int] = Field(default_factory=list)
    not_in_core_properties: list[str] = Field(
        default_factory=list, description="APNs of scores loaded without a matching property"
    )
    skipped_records: list[int] = Field(default_factory=list)
    propensity_zips: list[tuple[int, str | None]] = Field(
        default_factory=list, description="(score, zip code) of saved and previously loaded scores"
    )

    def record(self, index: int, outcome: RowOutcome) -> None:
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1
        if outcome is not RowOutcome.SAVED:
            self.skipped_records.append(index)

    def count(self, outcome: RowOutcome) -> int:
        return self.outcomes.get(outcome, 0)

    @property
    def nr_processed(self) -> int:
        return sum(self.outcomes.values())

    @property
    def nr_saved(self) -> int:
        return self.count(RowOutcome.SAVED)

    @property
    def nr_skipped(self) -> int:
        return len(self.skipped_records)

    @property
    def nr_issues(self) -> int:
        return (
            len(self.deserialization_failures)
            + len(self.validation_failures)
            + len(self.save_failures)
            + len(self.missing_scores)
        )

    def first_skipped(self, n: int = DEFAULT_SKIPPED_SAMPLE_SIZE) -> list[int]:
        return self.skipped_records[:n]

    def summary(self, sample_size: int = DEFAULT_SKIPPED_SAMPLE_SIZE) -> str:
        issues = f"{self.nr_issues} issues found"
        if self.nr_issues:
            issues += ":"
            for count, label in (
                (len(self.deserialization_failures), "deserialization failures"),
                (len(self.validation_failures), "validation failures"),
                (len(self.save_failures), "save failures"),
                (len(self.missing_scores), "missing scores"),
                (len(self.not_in_core_properties), "not in core properties (but still loaded)"),
            ):
                if count:
                    issues += f"\n\t{count} {label}"

        text = f"Saved {self.nr_saved} records from {self.source} ({self.nr_skipped} skipped) with {issues}"
        if self.skipped_records:
            first = self.first_skipped(sample_size)
            text += f"\nindexes of first {len(first)} skipped csv records: {first}"
        return text


RowCallback = Callable[[int, RowOutcome], None]


class RecordLoader(ABC):
    """Shared row pipeline; subclasses supply the row shape and repository."""

    kind = "record"
    row_model: type[CsvRow] = CsvRow

    def __init__(self, session: Session, source: str = ""):
        self.session = session
        self.report = QualityReport(source=source)

    @property
    @abstractmethod
    def repository(self):
        """Repository that finds and saves this loader's records."""

    @abstractmethod
    def translate(self, row: CsvRow):
        """Domain record for a validated row; raises TranslationError."""

    def check_row(self, index: int, row: CsvRow) -> RowOutcome | None:
        """Early exit before structural validation, if any."""
        return None

    def on_duplicate(self, existing) -> None:
        pass

    def before_save(self, entity) -> None:
        pass

    def on_saved(self, saved) -> None:
        pass

    def load(
        self, rows: Iterable[tuple[int, RawRow | ParseError]], on_row: RowCallback | None = None
    ) -> QualityReport:
        logger.info(f"loading {self.kind} records from {self.report.source}")
        for index, raw in rows:
            outcome = self.process_row(index, raw)
            self.report.record(index, outcome)
            if on_row is not None:
                on_row(index, outcome)
        logger.warning(self.report.summary())
        return self.report

    def process_row(self, index: int, raw: RawRow | ParseError) -> RowOutcome:
        report = self.report

        if isinstance(raw, ParseError):
            logger.error(f"failed to read {self.kind} record[{index}]: {raw.reason}")
            report.deserialization_failures.append(RowFailure(index=index, error=raw.reason))
            return RowOutcome.SKIPPED_DESERIALIZATION_FAILURE

        try:
            row = self.row_model.model_validate(raw)
        except ValidationError as e:
            logger.error(f"failed to load {self.kind} record[{index}]: {e}")
            report.deserialization_failures.append(RowFailure(index=index, error=str(e)))
            return RowOutcome.SKIPPED_DESERIALIZATION_FAILURE
        logger.debug(f"deserialized {self.kind} record[{index}]")

        early = self.check_row(index, row)
        if early is not None:
            return early

        errors = row.validate_fields()
        if errors:
            err = RowValidationError(errors)
            logger.error(f"{self.kind} record[{index}] failed initial validation: {err}")
            report.validation_failures.append(RowFailure(index=index, error=str(err)))
            return RowOutcome.SKIPPED_VALIDATION_FAILURE
        logger.debug(f"{self.kind} record[{index}] validated")

        try:
            entity = self.translate(row)
        except TranslationError as e:
            logger.error(f"failed to convert {self.kind} record[{index}] into domain: {e}")
            report.deserialization_failures.append(RowFailure(index=index, error=str(e)))
            return RowOutcome.SKIPPED_DESERIALIZATION_FAILURE

        try:
            existing = self.repository.find(entity.apn)
        except RepositoryError as e:
            logger.error(f"error checking if {self.kind} record[{index}] was previously loaded: {e}")
            self.session.rollback()
            failure = RowFailure(index=index, error=str(e))
            report.lookup_failures.append(failure)
            report.deserialization_failures.append(failure)
            return RowOutcome.SKIPPED_DESERIALIZATION_FAILURE

        if existing is not None:
            logger.info(f"{self.kind} record[{index}] previously loaded for APN {entity.apn}, skipping")
            report.duplicates.append(index)
            self.on_duplicate(existing)
            return RowOutcome.SKIPPED_DUPLICATE

        self.before_save(entity)

        try:
            with transaction(self.session):
                saved = self.repository.save(entity)
        except RepositoryError as e:
            logger.error(f"failed to save {self.kind} record[{index}]: {e}")
            report.save_failures.append(SaveFailure(index=index, error=str(e), row=raw))
            return RowOutcome.SKIPPED_SAVE_FAILURE

        logger.debug(f"saved {self.kind} record[{index}] as id {saved.id}")
        self.on_saved(saved)
        return RowOutcome.SAVED


class PropertyLoader(RecordLoader):
    """Loads property extracts into the properties table."""

    kind = "property"
    row_model = CsvPropertyRow

    def __init__(self, session: Session, classifier: LandUseClassifier | None = None, source: str = ""):
        super().__init__(session, source)
        self.classifier = classifier or LandUseClassifier()
        self.properties = PropertyRecordRepository(session)

    @property
    def repository(self) -> PropertyRecordRepository:
        return self.properties

    def translate(self, row: CsvPropertyRow) -> Property:
        return property_from_row(row, self.classifier)


class PropensityLoader(RecordLoader):
    """Loads propensity score extracts, noting scores with no property on file."""

    kind = "propensity"
    row_model = CsvPropensityRow

    def __init__(self, session: Session, source: str = ""):
        super().__init__(session, source)
        self.scores = PropertyPropensityScoreRepository(session)
        self.properties = PropertyRecordRepository(session)

    @property
    def repository(self) -> PropertyPropensityScoreRepository:
        return self.scores

    def translate(self, row: CsvPropensityRow) -> PropertyPropensityScore:
        return propensity_from_row(row)

    def check_row(self, index: int, row: CsvPropensityRow) -> RowOutcome | None:
        if not row.has_score:
            logger.warning(f"propensity record[{index}] does not have a propensity score, skipping")
            self.report.missing_scores.append(index)
            return RowOutcome.SKIPPED_MISSING_SCORE
        return None

    def _note_zip(self, score: PropertyPropensityScore) -> None:
        zip_code = str(score.zip_or_postal_code) if score.zip_or_postal_code else None
        self.report.propensity_zips.append((int(score.score), zip_code))

    def on_duplicate(self, existing: PropertyPropensityScore) -> None:
        self._note_zip(existing)

    def before_save(self, entity: PropertyPropensityScore) -> None:
        try:
            matched = self.properties.find(entity.apn) is not None
        except RepositoryError as e:
            logger.error(f"could not check core properties for APN {entity.apn}: {e}")
            self.session.rollback()
            matched = False
        if not matched:
            logger.debug(f"no core property for APN {entity.apn}, loading score anyway")
            self.report.not_in_core_properties.append(str(entity.apn))

    def on_saved(self, saved: PropertyPropensityScore) -> None:
        self._note_zip(saved)
