import pytest
from conftest import propensity_row, property_row
from sqlalchemy import create_engine, func, select

from address_propensity.cli import build_parser, main
from address_propensity.charts import SCORE_DISTRIBUTION_FILE, ZIPCODE_DISTRIBUTION_FILE
from address_propensity.models import PropensityRecord, PropertyRecord


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    return url


def count(url, model):
    engine = create_engine(url)
    try:
        with engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(model)).scalar_one()
    finally:
        engine.dispose()


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_load_property_file(database_url, property_csv):
    path = property_csv([property_row(), property_row(apn_unformatted="4311-001-020")])
    assert main(["property", str(path)]) == 0
    assert count(database_url, PropertyRecord) == 2

    assert main(["property", str(path)]) == 0
    assert count(database_url, PropertyRecord) == 2


def test_load_with_delimiter(database_url, property_csv):
    path = property_csv([property_row()], delimiter="|")
    assert main(["property", str(path), "--delimiter", "|"]) == 0
    assert count(database_url, PropertyRecord) == 1


def test_load_propensity_file_with_charts(database_url, propensity_csv, tmp_path):
    path = propensity_csv(
        [
            propensity_row(),
            propensity_row(apn="7770001", HomeEquityIntelScore_LineofCredit="300"),
            propensity_row(apn="7770002", HomeEquityIntelScore_LineofCredit=""),
        ]
    )
    plots = tmp_path / "plots"
    assert main(["propensity", str(path), "--plot-dir", str(plots)]) == 0

    assert count(database_url, PropensityRecord) == 2
    assert (plots / SCORE_DISTRIBUTION_FILE).stat().st_size > 0
    assert (plots / ZIPCODE_DISTRIBUTION_FILE).stat().st_size > 0


def test_config_file_selects_database(database_url, property_csv, tmp_path, monkeypatch):
    other = f"sqlite:///{tmp_path / 'other.db'}"
    config = tmp_path / "local.env"
    config.write_text(f"DATABASE_URL={other}\n")
    monkeypatch.setenv("DATABASE_URL", database_url)

    path = property_csv([property_row()])
    assert main(["--config", str(config), "property", str(path)]) == 0
    assert count(other, PropertyRecord) == 1


def test_missing_input_file(database_url, tmp_path):
    assert main(["property", str(tmp_path / "missing.csv")]) == 1


def test_missing_config_file(database_url, property_csv, tmp_path):
    path = property_csv([property_row()])
    assert main(["--config", str(tmp_path / "missing.env"), "property", str(path)]) == 1


def test_undecodable_row_does_not_stop_the_load(database_url, property_csv):
    path = property_csv([property_row(), property_row(apn_unformatted="4311-001-020", city="Allen")])
    path.write_bytes(path.read_bytes().replace(b"Allen", b"All\xe9n"))

    assert main(["property", str(path)]) == 0
    assert count(database_url, PropertyRecord) == 1
