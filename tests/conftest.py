import csv
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("LOGFIRE_TOKEN", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from address_propensity import database
from address_propensity.database import get_db, init_db, session_dependency
from address_propensity.main import app

PROPERTY_HEADER = [
    "apn_unformatted",
    "primary_number",
    "street_pre_direction",
    "street_name",
    "street_suffix",
    "street_post_direction",
    "secondary_designator",
    "secondary_number",
    "city",
    "state",
    "zip_code",
    "latitude",
    "longitude",
    "county_name",
    "standardized_land_use_type",
    "area_sq_ft",
    "beds_count",
    "baths",
    "total_area_sq_ft",
]

PROPENSITY_HEADER = [
    "apn",
    "SitusHouseNbr",
    "SitusStreet",
    "SitusMode",
    "SitusCity",
    "SitusState",
    "SitusZIP5",
    "HomeEquityIntelScore_LineofCredit",
]


def property_row(**overrides) -> dict[str, str]:
    row = {
        "apn_unformatted": "4311-001-019",
        "primary_number": "3112",
        "street_pre_direction": "N",
        "street_name": "Bonnie Brook",
        "street_suffix": "Ln",
        "street_post_direction": "",
        "secondary_designator": "Unit",
        "secondary_number": "7A",
        "city": "Plano",
        "state": "TX",
        "zip_code": "75075",
        "latitude": "33.0198",
        "longitude": "-96.6989",
        "county_name": "Collin",
        "standardized_land_use_type": "Single Family Residential",
        "area_sq_ft": "1850",
        "beds_count": "3",
        "baths": "2.5",
        "total_area_sq_ft": "2100",
    }
    row.update(overrides)
    return row


def propensity_row(**overrides) -> dict[str, str]:
    row = {
        "apn": "4311001019",
        "SitusHouseNbr": "3112",
        "SitusStreet": "Bonnie Brook",
        "SitusMode": "Ln",
        "SitusCity": "Plano",
        "SitusState": "TX",
        "SitusZIP5": "75075",
        "HomeEquityIntelScore_LineofCredit": "720",
    }
    row.update(overrides)
    return row


def write_csv(path, header, rows, delimiter=","):
    with open(path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=header, delimiter=delimiter)
        writer.writeheader()
        writer.writerows(rows)
    return path


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return database.session_factory(engine)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def client(session_factory):
    app.dependency_overrides[get_db] = session_dependency(session_factory)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def property_csv(tmp_path):
    def make(rows, name="properties.csv", delimiter=","):
        return write_csv(tmp_path / name, PROPERTY_HEADER, rows, delimiter)

    return make


@pytest.fixture
def propensity_csv(tmp_path):
    def make(rows, name="propensities.csv"):
        return write_csv(tmp_path / name, PROPENSITY_HEADER, rows)

    return make
