"""Tests for the CDEC adapter."""

from datetime import date
from unittest.mock import patch

import pytest

from snowdepth.models import DateRange, SourceType
from snowdepth.pipelines.cdec import CDECAdapter, parse_cdec_date


CDEC_CSV = """STATION_ID,DURATION,SENSOR_NUMBER,SENS_TYPE,DATE TIME,OBS DATE,VALUE,DATA_FLAG,UNITS
BLC,D,18,SNOW DP,20240105 0000,20240105 0000,42, ,INCHES
BLC,D,18,SNOW DP,1/6/2024 00:00,1/6/2024 00:00,44, ,INCHES
BLC,D,18,SNOW DP,20240107 0000,20240107 0000,-9999, ,INCHES
BLC,D,18,SNOW DP,20240108 0000,20240108 0000,---, ,INCHES
BLC,D,18
BLC,D,18,SNOW DP,yesterday,yesterday,40, ,INCHES
"""


class TestParseCdecDate:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("20240105 0000", date(2024, 1, 5)),
            ("1/5/2024 00:00", date(2024, 1, 5)),
            ("12/31/2023", date(2023, 12, 31)),
            ("not a date", None),
        ],
    )
    def test_formats(self, text, expected):
        assert parse_cdec_date(text) == expected


@pytest.fixture
def adapter(settings, clock):
    return CDECAdapter(settings, clock=clock)


class TestCDECAdapter:
    def test_parse_csv(self, adapter, cdec_station, ingested_at):
        records = adapter.parse_csv(CDEC_CSV, cdec_station, ingested_at)

        assert [(r.date, r.snow_depth_in) for r in records] == [
            (date(2024, 1, 5), 42.0),
            (date(2024, 1, 6), 44.0),
        ]
        assert all(r.source == SourceType.STATE_SENSOR for r in records)

    def test_header_only(self, adapter, cdec_station, ingested_at):
        header = CDEC_CSV.splitlines()[0]
        assert adapter.parse_csv(header, cdec_station, ingested_at) == []

    def test_fetch_params(self, adapter, cdec_station, mock_response):
        date_range = DateRange(date(2024, 1, 1), date(2024, 1, 15))

        with patch("snowdepth.utils.base.requests.get", return_value=mock_response(CDEC_CSV)) as mock_get:
            records = adapter.fetch(cdec_station, date_range)

        assert len(records) == 2
        params = mock_get.call_args.kwargs["params"]
        assert params["Stations"] == "BLC"
        assert params["SensorNums"] == 18
        assert params["dur_code"] == "D"
        assert params["Start"] == "2024-01-01"
        assert params["End"] == "2024-01-15"
