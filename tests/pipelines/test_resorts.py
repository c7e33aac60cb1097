"""Tests for the resort conditions feed adapter."""

from unittest.mock import patch

import pytest

from snowdepth.exceptions import MissingCredentialError
from snowdepth.models import DateRange, SourceType, StationDefinition
from snowdepth.pipelines.resorts import ResortFeedAdapter, best_depth, resort_list


UTAH_FEED = [
    {"id": "brighton", "name": "Brighton", "max_base_depth": 0, "min_base_depth": 12},
    {"id": "alta", "name": "Alta", "maxBaseDepth": 88},
    {"id": "solitude", "name": "Solitude", "max_base_depth": 0, "min_base_depth": 0},
    {"id": "snowbasin", "name": "Snowbasin", "conditions": {"surface_conditions": "6 in packed powder"}},
]


class TestBestDepth:
    def test_falls_through_zero_max(self):
        assert best_depth({"max_base_depth": 0, "min_base_depth": 12}) == 12.0

    def test_max_preferred(self):
        assert best_depth({"max_base_depth": 40, "min_base_depth": 12}) == 40.0

    def test_no_positive_depth(self):
        assert best_depth({"max_base_depth": 0, "min_base_depth": 0}) is None
        assert best_depth({"name": "Closed"}) is None

    def test_strings_and_nested_conditions(self):
        assert best_depth({"max_base_depth": "n/a", "min_base_depth": "30\""}) == 30.0
        assert best_depth({"conditions": {"surface_conditions": "6 in packed powder"}}) == 6.0

    def test_booleans_ignored(self):
        assert best_depth({"max_base_depth": True}) is None


class TestResortList:
    def test_bare_list(self):
        assert resort_list(UTAH_FEED) == UTAH_FEED

    @pytest.mark.parametrize("key", ["resorts", "data"])
    def test_wrapped(self, key):
        assert resort_list({key: UTAH_FEED}) == UTAH_FEED

    def test_unexpected_payload(self):
        assert resort_list("nope") == []
        assert resort_list({"error": "bad key"}) == []


def resort(name: str, resort_id: str, state: str = "UT") -> StationDefinition:
    return StationDefinition(name=name, station_id=resort_id, state=state, source=SourceType.RESORT_FEED)


@pytest.fixture
def adapter(settings, clock):
    return ResortFeedAdapter(settings, clock=clock)


class TestResortFeedAdapter:
    def test_only_configured_resorts_with_depth(self, adapter, today, mock_response):
        stations = [resort("Brighton", "brighton"), resort("Alta", "ALTA"), resort("Solitude", "solitude")]

        with patch("snowdepth.utils.base.requests.get") as mock_get:
            mock_get.return_value = mock_response(json_data={"resorts": UTAH_FEED})
            records = adapter.fetch_all(stations, DateRange.last_days(7, today))

        assert {r.station_name: r.snow_depth_in for r in records} == {"Brighton": 12.0, "Alta": 88.0}
        assert all(r.date == today for r in records)
        assert mock_get.call_args.args[0] == "https://feed.test/resorts/UT"
        assert mock_get.call_args.kwargs["params"] == {"apikey": "test-key", "region": "UT"}

    def test_matches_by_name(self, adapter, ingested_at):
        records = adapter.records_from_feed(UTAH_FEED, [resort("Snowbasin", "sb-1")], ingested_at)
        assert [r.snow_depth_in for r in records] == [6.0]

    def test_one_fetch_per_region(self, adapter, today, mock_response):
        stations = [resort("Brighton", "brighton"), resort("Alta", "alta"), resort("Vail", "vail", "CO")]

        with patch("snowdepth.utils.base.requests.get") as mock_get:
            mock_get.side_effect = [
                mock_response(json_data=UTAH_FEED),
                mock_response(json_data=[{"id": "vail", "max_base_depth": 50}]),
            ]
            records = adapter.fetch_all(stations, DateRange.last_days(7, today))

        assert mock_get.call_count == 2
        assert len(records) == 3

    def test_missing_credentials(self, settings, resort_station, today):
        adapter = ResortFeedAdapter(settings.model_copy(update={"resort_api_key": None}))

        with pytest.raises(MissingCredentialError):
            adapter.fetch(resort_station, DateRange.last_days(7, today))
