"""Tests for runtime settings."""

from pathlib import Path

from snowdepth.config import Settings
from snowdepth.models import SourceType


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SNOWDEPTH_NOAA_TOKEN", raising=False)
        settings = Settings(_env_file=None)

        assert settings.max_rate_limit_retries == 1
        assert settings.noaa_token is None
        assert settings.snotel_network == "SNTL"
        assert settings.cdec_sensor_code == 18
        assert settings.daily_sources[0] == SourceType.AUTOMATED_SENSOR
        assert len(settings.daily_sources) == 5

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SNOWDEPTH_NOAA_TOKEN", "abc123")
        monkeypatch.setenv("SNOWDEPTH_DB_PATH", "/tmp/snow.duckdb")
        monkeypatch.setenv("SNOWDEPTH_DAILY_SOURCES", '["SNOTEL", "CDEC"]')
        monkeypatch.setenv("SNOWDEPTH_STATION_ALIASES", '{"Blue Canyon (CDEC)": "Blue Canyon"}')

        settings = Settings(_env_file=None)

        assert settings.noaa_token == "abc123"
        assert settings.db_path == Path("/tmp/snow.duckdb")
        assert settings.daily_sources == [SourceType.AUTOMATED_SENSOR, SourceType.STATE_SENSOR]
        assert settings.station_aliases == {"Blue Canyon (CDEC)": "Blue Canyon"}

    def test_http_headers(self):
        settings = Settings(_env_file=None, user_agent="test-agent")
        assert settings.http_headers == {"User-Agent": "test-agent"}
