"""Runtime configuration for snowdepth.

Settings load from environment variables prefixed ``SNOWDEPTH_`` (and an
optional ``.env`` file). Credentials are optional at startup; the adapter
that needs one raises MissingCredentialError when it runs.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from snowdepth.models import SourceType
from snowdepth.utils.io import DEFAULT_DB_PATH, DEFAULT_STATIONS_PATH


class Settings(BaseSettings):
    """Settings passed explicitly into the orchestrator, registry, adapters and store."""

    model_config = SettingsConfigDict(
        env_prefix="SNOWDEPTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage and station registry
    db_path: Path = Field(default=DEFAULT_DB_PATH, description="DuckDB database file")
    stations_path: Path = Field(
        default=DEFAULT_STATIONS_PATH,
        description="CSV export of the station configuration sheet",
    )

    # HTTP
    user_agent: str = "snowdepth-ingest (snow depth dashboard)"
    request_timeout: float = Field(default=30.0, gt=0)

    # Self-imposed rate limiting (seconds)
    station_delay_seconds: float = Field(default=0.5, ge=0)
    source_delay_seconds: float = Field(default=2.0, ge=0)

    # Lookback windows
    daily_lookback_days: int = Field(default=7, ge=1)
    backfill_years: int = Field(default=5, ge=1)

    # SNOTEL report generator
    snotel_base_url: str = "https://wcc.sc.egov.usda.gov/reportGenerator/view_csv/customSingleStationReport/daily"
    snotel_network: str = "SNTL"

    # NOAA Climate Data Online
    noaa_token: Optional[str] = Field(default=None, description="NOAA CDO API token")
    noaa_base_url: str = "https://www.ncei.noaa.gov/cdo-web/api/v2/data"
    noaa_page_limit: int = Field(default=1000, ge=1, le=1000)
    noaa_request_delay_seconds: float = Field(default=0.25, ge=0)
    rate_limit_retry_delay_seconds: float = Field(default=5.0, ge=0)
    max_rate_limit_retries: int = Field(default=1, ge=0, le=5)

    # NWS text bulletins
    bulletin_url: str = "https://forecast.weather.gov/product.php"
    bulletin_product: str = "RTP"

    # CDEC
    cdec_base_url: str = "https://cdec.water.ca.gov/dynamicapp/req/CSVDataServlet"
    cdec_sensor_code: int = 18
    cdec_duration_code: str = "D"

    # Resort conditions feed; {region} is replaced with the state code
    resort_feed_url: Optional[str] = None
    resort_api_key: Optional[str] = None

    # Sources run by the daily entry point, in order
    daily_sources: list[SourceType] = Field(
        default_factory=lambda: [
            SourceType.AUTOMATED_SENSOR,
            SourceType.FEDERAL_API,
            SourceType.FEDERAL_BULLETIN,
            SourceType.STATE_SENSOR,
            SourceType.RESORT_FEED,
        ]
    )

    # Old station name -> canonical name, applied by the alias-merge task
    station_aliases: dict[str, str] = Field(default_factory=dict)

    @property
    def http_headers(self) -> dict[str, str]:
        """Headers sent with every outbound request."""
        return {"User-Agent": self.user_agent}
