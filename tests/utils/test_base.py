"""Tests for the SourceAdapter base class."""

from datetime import date
from unittest.mock import patch

import pytest

from snowdepth.exceptions import FetchError, MissingCredentialError, SnotelFetchError
from snowdepth.models import DateRange, build_record
from snowdepth.utils.base import SourceAdapter, ValidationResult


class FakeAdapter(SourceAdapter):
    """Adapter whose per-station behaviour is scripted by the test."""

    source = None
    fetch_error = SnotelFetchError

    def __init__(self, settings, outcomes, clock=None):
        super().__init__(settings, clock=clock)
        self.outcomes = outcomes
        self.calls = []

    def fetch(self, station, date_range):
        self.calls.append(station.name)
        outcome = self.outcomes[station.name]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def date_range(today):
    return DateRange.last_days(7, today)


class TestValidationResult:
    def test_str(self):
        result = ValidationResult(valid=True, total_rows=10)
        assert str(result) == "ValidationResult(VALID, rows=10, outliers=0)"
        assert result.issues == []


class TestFetchAll:
    """Tests for sequential per-station fetching."""

    def test_collects_records_from_all_stations(
        self, settings, snotel_station, cdec_station, ingested_at, date_range
    ):
        r1 = build_record(date(2024, 1, 14), snotel_station, 40, ingested_at)
        r2 = build_record(date(2024, 1, 14), cdec_station, 30, ingested_at)
        adapter = FakeAdapter(settings, {snotel_station.name: [r1], cdec_station.name: [r2]})

        records = adapter.fetch_all([snotel_station, cdec_station], date_range)

        assert records == [r1, r2]
        assert adapter.calls == [snotel_station.name, cdec_station.name]

    def test_station_failure_does_not_stop_others(
        self, settings, snotel_station, cdec_station, ingested_at, date_range
    ):
        r2 = build_record(date(2024, 1, 14), cdec_station, 30, ingested_at)
        adapter = FakeAdapter(
            settings,
            {snotel_station.name: SnotelFetchError("boom"), cdec_station.name: [r2]},
        )

        records = adapter.fetch_all([snotel_station, cdec_station], date_range)

        assert records == [r2]

    def test_all_stations_failing_raises(self, settings, snotel_station, date_range):
        adapter = FakeAdapter(settings, {snotel_station.name: SnotelFetchError("boom")})

        with pytest.raises(FetchError, match="boom"):
            adapter.fetch_all([snotel_station], date_range)

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("Expected 2 fields, saw 3"),
            AttributeError("'str' object has no attribute 'get'"),
            KeyError("value"),
        ],
    )
    def test_parse_error_does_not_stop_others(
        self, settings, snotel_station, cdec_station, ingested_at, date_range, error
    ):
        r2 = build_record(date(2024, 1, 14), cdec_station, 30, ingested_at)
        adapter = FakeAdapter(settings, {snotel_station.name: error, cdec_station.name: [r2]})

        records = adapter.fetch_all([snotel_station, cdec_station], date_range)

        assert records == [r2]

    def test_parse_error_wrapped_in_adapter_error(self, settings, snotel_station, date_range):
        cause = ValueError("Expected 2 fields, saw 3")
        adapter = FakeAdapter(settings, {snotel_station.name: cause})

        with pytest.raises(SnotelFetchError, match="Berthoud Summit") as excinfo:
            adapter.fetch_all([snotel_station], date_range)

        assert excinfo.value.__cause__ is cause

    def test_missing_credentials_propagate(self, settings, snotel_station, cdec_station, date_range):
        adapter = FakeAdapter(
            settings,
            {snotel_station.name: MissingCredentialError("token required"), cdec_station.name: []},
        )

        with pytest.raises(MissingCredentialError):
            adapter.fetch_all([snotel_station, cdec_station], date_range)

        assert adapter.calls == [snotel_station.name]

    def test_no_stations_returns_empty(self, settings, date_range):
        adapter = FakeAdapter(settings, {})
        assert adapter.fetch_all([], date_range) == []

    def test_sleeps_between_stations(
        self, settings, snotel_station, cdec_station, date_range
    ):
        settings = settings.model_copy(update={"station_delay_seconds": 0.5})
        adapter = FakeAdapter(settings, {snotel_station.name: [], cdec_station.name: []})

        with patch("snowdepth.utils.base.time.sleep") as mock_sleep:
            adapter.fetch_all([snotel_station, cdec_station], date_range)

        mock_sleep.assert_called_once_with(0.5)


class TestValidate:
    def test_valid_batch(self, settings, snotel_station, ingested_at):
        adapter = FakeAdapter(settings, {})
        records = [
            build_record(date(2024, 1, 13), snotel_station, 40, ingested_at),
            build_record(date(2024, 1, 14), snotel_station, 41, ingested_at),
        ]

        result = adapter.validate(records)

        assert result.valid
        assert result.total_rows == 2
        assert result.stats["date_range"] == ("2024-01-13", "2024-01-14")

    def test_duplicate_keys_flagged(self, settings, snotel_station, ingested_at):
        adapter = FakeAdapter(settings, {})
        record = build_record(date(2024, 1, 14), snotel_station, 40, ingested_at)

        result = adapter.validate([record, record])

        assert not result.valid
        assert any("Duplicate" in issue for issue in result.issues)

    def test_implausible_depth_flagged(self, settings, snotel_station, ingested_at):
        adapter = FakeAdapter(settings, {})
        record = build_record(date(2024, 1, 14), snotel_station, 900, ingested_at)

        result = adapter.validate([record])

        assert not result.valid
        assert result.outliers_count == 1
