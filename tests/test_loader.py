import pytest
from conftest import propensity_row, property_row

from address_propensity.errors import ParseError, RepositoryError
from address_propensity.loader import (
    PropensityLoader,
    PropertyLoader,
    QualityReport,
    RecordLoader,
    RowOutcome,
)
from address_propensity.models import PropensityRecord, PropertyRecord
from address_propensity.reader import read_rows
from address_propensity.repository import PropertyPropensityScoreRepository, PropertyRecordRepository
from address_propensity.schemas import AssessorParcelNumber


def load_properties(session, path):
    return PropertyLoader(session, source=str(path)).load(read_rows(path))


def load_propensities(session, path):
    return PropensityLoader(session, source=str(path)).load(read_rows(path))


def test_loader_must_supply_repository_and_translation(session):
    class ScoresOnly(RecordLoader):
        def translate(self, row):
            return row

    with pytest.raises(TypeError):
        ScoresOnly(session)
    with pytest.raises(TypeError):
        RecordLoader(session)


class TestPropertyLoader:
    def test_saves_valid_rows(self, session, property_csv):
        path = property_csv(
            [property_row(), property_row(apn_unformatted="4311-001-020", primary_number="3114")]
        )
        report = load_properties(session, path)

        assert report.nr_saved == 2
        assert report.skipped_records == []
        assert session.query(PropertyRecord).count() == 2

    def test_reloading_is_idempotent(self, session, property_csv):
        path = property_csv([property_row(), property_row(apn_unformatted="4311-001-020")])
        load_properties(session, path)

        report = load_properties(session, path)
        assert report.nr_saved == 0
        assert report.count(RowOutcome.SKIPPED_DUPLICATE) == 2
        assert report.duplicates == [1, 2]
        assert session.query(PropertyRecord).count() == 2

    def test_hyphenation_variants_are_duplicates(self, session, property_csv):
        path = property_csv([property_row(), property_row(apn_unformatted="4311001019")])
        report = load_properties(session, path)
        assert report.outcomes == {RowOutcome.SAVED: 1, RowOutcome.SKIPPED_DUPLICATE: 1}

    def test_each_row_gets_one_outcome(self, session, property_csv):
        path = property_csv(
            [
                property_row(),
                property_row(apn_unformatted="4311-001-021", beds_count="many"),
                property_row(apn_unformatted="12-3"),
                property_row(apn_unformatted="4311-001-022", standardized_land_use_type="Office"),
                property_row(apn_unformatted="4311-001-023", latitude="95"),
            ]
        )
        report = load_properties(session, path)

        assert report.nr_processed == 5
        assert report.outcomes == {
            RowOutcome.SAVED: 1,
            RowOutcome.SKIPPED_DESERIALIZATION_FAILURE: 2,
            RowOutcome.SKIPPED_VALIDATION_FAILURE: 2,
        }
        assert [f.index for f in report.deserialization_failures] == [2, 4]
        assert [f.index for f in report.validation_failures] == [3, 5]
        assert report.skipped_records == [2, 3, 4, 5]
        assert session.query(PropertyRecord).count() == 1

    def test_parse_errors_are_deserialization_failures(self, session):
        rows = [(1, ParseError("expected 19 columns, found 3", index=1)), (2, property_row())]
        report = PropertyLoader(session).load(rows)
        assert report.count(RowOutcome.SKIPPED_DESERIALIZATION_FAILURE) == 1
        assert report.nr_saved == 1

    def test_undecodable_row_is_skipped(self, session, property_csv):
        path = property_csv([property_row(), property_row(apn_unformatted="4311-001-020", city="Allen")])
        path.write_bytes(path.read_bytes().replace(b"Allen", b"All\xe9n"))

        report = load_properties(session, path)
        assert report.outcomes == {RowOutcome.SAVED: 1, RowOutcome.SKIPPED_DESERIALIZATION_FAILURE: 1}
        assert [f.index for f in report.deserialization_failures] == [2]
        assert session.query(PropertyRecord).count() == 1

    def test_save_failure_keeps_raw_row(self, session, property_csv, monkeypatch):
        def fail(self, entity):
            raise RepositoryError("disk full")

        monkeypatch.setattr(PropertyRecordRepository, "save", fail)
        report = load_properties(session, property_csv([property_row()]))

        assert report.count(RowOutcome.SKIPPED_SAVE_FAILURE) == 1
        (failure,) = report.save_failures
        assert failure.index == 1
        assert failure.row["apn_unformatted"] == "4311-001-019"
        assert "disk full" in failure.error

    def test_lookup_failure(self, session, property_csv, monkeypatch):
        def fail(self, apn):
            raise RepositoryError("connection reset")

        monkeypatch.setattr(PropertyRecordRepository, "find", fail)
        report = load_properties(session, property_csv([property_row()]))

        assert report.count(RowOutcome.SKIPPED_DESERIALIZATION_FAILURE) == 1
        assert [f.index for f in report.lookup_failures] == [1]
        assert session.query(PropertyRecord).count() == 0

    def test_reports_progress(self, session, property_csv):
        seen = []
        path = property_csv([property_row(), property_row(apn_unformatted="x")])
        PropertyLoader(session).load(read_rows(path), on_row=lambda i, o: seen.append((i, o)))
        assert seen == [(1, RowOutcome.SAVED), (2, RowOutcome.SKIPPED_VALIDATION_FAILURE)]


class TestPropensityLoader:
    def test_missing_scores_are_skipped_before_validation(self, session, propensity_csv):
        path = propensity_csv(
            [
                propensity_row(),
                propensity_row(apn="x", HomeEquityIntelScore_LineofCredit=""),
            ]
        )
        report = load_propensities(session, path)

        assert report.outcomes == {RowOutcome.SAVED: 1, RowOutcome.SKIPPED_MISSING_SCORE: 1}
        assert report.missing_scores == [2]
        assert report.validation_failures == []

    def test_scores_without_property_still_load(self, session, propensity_csv):
        report = load_propensities(session, propensity_csv([propensity_row()]))

        assert report.nr_saved == 1
        assert report.not_in_core_properties == ["00004311001019"]
        assert session.query(PropensityRecord).count() == 1

    def test_scores_join_to_properties_across_formats(self, session, property_csv, propensity_csv):
        load_properties(session, property_csv([property_row(apn_unformatted="4311-001-019")]))
        report = load_propensities(session, propensity_csv([propensity_row(apn="4311001019")]))

        assert report.nr_saved == 1
        assert report.not_in_core_properties == []

        scores = PropertyPropensityScoreRepository(session)
        stored = scores.find(AssessorParcelNumber.parse("4311-001-019"))
        ((score, address),) = scores.find_ranked(stored.zip_or_postal_code, limit=10)
        assert score == stored
        assert str(address) == "3112 N BONNIE BROOK LN UNIT 7A, PLANO, TX 75075, USA"

    def test_out_of_range_score(self, session, propensity_csv):
        path = propensity_csv([propensity_row(HomeEquityIntelScore_LineofCredit="0")])
        report = load_propensities(session, path)
        assert report.count(RowOutcome.SKIPPED_DESERIALIZATION_FAILURE) == 1

    def test_negative_score(self, session, propensity_csv):
        path = propensity_csv([propensity_row(HomeEquityIntelScore_LineofCredit="-3")])
        report = load_propensities(session, path)
        assert report.count(RowOutcome.SKIPPED_VALIDATION_FAILURE) == 1

    def test_tracks_scores_by_zip(self, session, propensity_csv):
        path = propensity_csv(
            [propensity_row(), propensity_row(apn="7770001", HomeEquityIntelScore_LineofCredit="300")]
        )
        load_propensities(session, path)

        report = load_propensities(session, path)
        assert report.count(RowOutcome.SKIPPED_DUPLICATE) == 2
        assert report.propensity_zips == [(720, "75075"), (300, "75075")]


class TestQualityReport:
    def test_summary(self):
        report = QualityReport(source="scores.csv")
        for index, outcome in enumerate(
            [RowOutcome.SAVED, RowOutcome.SKIPPED_MISSING_SCORE, RowOutcome.SKIPPED_DUPLICATE], 1
        ):
            report.record(index, outcome)
        report.missing_scores.append(2)
        report.not_in_core_properties.append("00000000000001")

        assert report.summary() == (
            "Saved 1 records from scores.csv (2 skipped) with 1 issues found:"
            "\n\t1 missing scores"
            "\n\t1 not in core properties (but still loaded)"
            "\nindexes of first 2 skipped csv records: [2, 3]"
        )

    def test_clean_summary(self):
        report = QualityReport(source="scores.csv")
        report.record(1, RowOutcome.SAVED)
        assert report.summary() == "Saved 1 records from scores.csv (0 skipped) with 0 issues found"

    @pytest.mark.parametrize("n,expected", [(10, list(range(1, 13))[:10]), (3, [1, 2, 3])])
    def test_first_skipped(self, n, expected):
        report = QualityReport()
        for index in range(1, 13):
            report.record(index, RowOutcome.SKIPPED_DUPLICATE)
        assert report.first_skipped(n) == expected
