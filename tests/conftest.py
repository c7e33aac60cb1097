"""Shared pytest fixtures for snowdepth tests.

Test Tiers:
- unit: Fast tests with fixtures, no network (default)
- live: Real API tests, slow, requires network and may need credentials

Run live tests with: pytest -m live --run-live
"""

from datetime import date, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from snowdepth.config import Settings
from snowdepth.models import SourceType, StationDefinition
from snowdepth.store import ObservationStore


def pytest_addoption(parser):
    """Add command line options for test configuration."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run live API tests (slow, requires network)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests using fixtures")
    config.addinivalue_line("markers", "live: real API tests (slow, requires network)")


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified."""
    if config.getoption("--run-live"):
        # --run-live given: don't skip live tests
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# Fixed ingestion clock: 2024-01-15 is in water year 2024
INGESTED_AT = datetime(2024, 1, 15, 6, 30)


@pytest.fixture
def ingested_at() -> datetime:
    return INGESTED_AT


@pytest.fixture
def clock():
    """Clock callable returning the fixed ingestion time."""
    return lambda: INGESTED_AT


@pytest.fixture
def today() -> date:
    return INGESTED_AT.date()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with no delays, temp paths and dummy credentials."""
    return Settings(
        db_path=tmp_path / "test.duckdb",
        stations_path=tmp_path / "stations.csv",
        station_delay_seconds=0,
        source_delay_seconds=0,
        noaa_request_delay_seconds=0,
        rate_limit_retry_delay_seconds=0,
        noaa_token="test-token",
        resort_feed_url="https://feed.test/resorts/{region}",
        resort_api_key="test-key",
    )


@pytest.fixture
def store(tmp_path):
    """ObservationStore backed by a temporary DuckDB file."""
    db = ObservationStore(Path(tmp_path) / "store.duckdb")
    yield db
    db.close()


@pytest.fixture
def snotel_station() -> StationDefinition:
    return StationDefinition(
        name="Berthoud Summit",
        station_id="335:CO:SNTL",
        state="CO",
        source=SourceType.AUTOMATED_SENSOR,
        elevation=11300,
    )


@pytest.fixture
def noaa_station() -> StationDefinition:
    return StationDefinition(
        name="Tahoe City",
        station_id="GHCND:USC00048758",
        state="CA",
        source=SourceType.FEDERAL_API,
    )


@pytest.fixture
def cdec_station() -> StationDefinition:
    return StationDefinition(
        name="Blue Canyon",
        station_id="BLC",
        state="CA",
        source=SourceType.STATE_SENSOR,
    )


@pytest.fixture
def bulletin_station() -> StationDefinition:
    return StationDefinition(
        name="Alta Guard",
        station_id="ALTA",
        state="UT",
        source=SourceType.FEDERAL_BULLETIN,
        office="SLC",
        search_term="ALTA GUARD",
    )


@pytest.fixture
def resort_station() -> StationDefinition:
    return StationDefinition(
        name="Brighton",
        station_id="brighton",
        state="UT",
        source=SourceType.RESORT_FEED,
    )


def make_response(text: str = "", status_code: int = 200, json_data=None) -> MagicMock:
    """Build a stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.content = text.encode() if text else (b"{}" if json_data is not None else b"")
    response.json.return_value = json_data
    return response


@pytest.fixture
def mock_response():
    return make_response
