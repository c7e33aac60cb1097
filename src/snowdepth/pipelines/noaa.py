"""NOAA Climate Data Online (CDO) snow depth adapter.

Pulls the GHCN-Daily SNWD element from the CDO v2 web service. The service
caps each request at one year of data and roughly five requests per second,
so a range is split into calendar years and paged with ``limit``/``offset``.

Data source:
- https://www.ncei.noaa.gov/cdo-web/api/v2/data (requires a ``token`` header)

With ``units=metric`` SNWD is reported in millimeters; records are stored in
inches rounded to one decimal place.
"""

import logging
import math
import time
from datetime import datetime
from typing import Any

import requests

from snowdepth.exceptions import MissingCredentialError, NOAAFetchError, RateLimitError
from snowdepth.models import (
    DateRange,
    ObservationRecord,
    SourceType,
    StationDefinition,
    build_record,
)
from snowdepth.utils.base import SourceAdapter

logger = logging.getLogger(__name__)

DATASET_ID = "GHCND"
SNOW_DEPTH_DATATYPE = "SNWD"
MM_PER_INCH = 25.4
HTTP_TOO_MANY_REQUESTS = 429


def mm_to_inches(value_mm: float) -> float:
    """Convert millimeters to inches, rounded to one decimal place."""
    return round(value_mm / MM_PER_INCH, 1)


class NOAAAdapter(SourceAdapter):
    """Fetch historical daily snow depth from NOAA CDO.

    Example:
        >>> adapter = NOAAAdapter(Settings(noaa_token="..."))
        >>> records = adapter.fetch(station, DateRange(date(2022, 10, 1), date(2024, 3, 1)))
    """

    source = SourceType.FEDERAL_API
    fetch_error = NOAAFetchError

    def fetch(
        self, station: StationDefinition, date_range: DateRange
    ) -> list[ObservationRecord]:
        if not self.settings.noaa_token:
            raise MissingCredentialError("SNOWDEPTH_NOAA_TOKEN is required for the NOAA source")

        ingested_at = self.clock()
        records = []
        for chunk in date_range.calendar_years():
            results = self._fetch_year(station.station_id, chunk)
            records.extend(self.parse_results(results, station, ingested_at))
        return records

    def _fetch_year(self, station_id: str, chunk: DateRange) -> list[dict]:
        """Fetch every page of results for one station and one calendar year."""
        results: list[dict] = []
        offset = 1

        while True:
            params = {
                "datasetid": DATASET_ID,
                "datatypeid": SNOW_DEPTH_DATATYPE,
                "stationid": station_id,
                "startdate": chunk.start.isoformat(),
                "enddate": chunk.end.isoformat(),
                "units": "metric",
                "limit": self.settings.noaa_page_limit,
                "offset": offset,
            }
            payload = self._request(params)

            page = payload.get("results") or []
            if not isinstance(page, list):
                raise NOAAFetchError(f"NOAA results for {station_id} is not a list: {type(page).__name__}")
            results.extend(page)

            metadata = payload.get("metadata")
            resultset = metadata.get("resultset", {}) if isinstance(metadata, dict) else {}
            if not isinstance(resultset, dict):
                resultset = {}
            count = int(resultset.get("count", 0) or 0)
            offset += self.settings.noaa_page_limit
            if not page or offset > count:
                break

        logger.debug(f"NOAA {station_id} {chunk}: {len(results)} results")
        return results

    def _request(self, params: dict) -> dict[str, Any]:
        """Issue one CDO request, retrying after a fixed delay on HTTP 429.

        Retries are capped at ``max_rate_limit_retries``.

        Raises:
            RateLimitError: Still rate limited after the retry ceiling
            NOAAFetchError: Any other network or HTTP failure
        """
        headers = {**self.settings.http_headers, "token": self.settings.noaa_token}
        attempt = 0

        while True:
            if self.settings.noaa_request_delay_seconds > 0:
                time.sleep(self.settings.noaa_request_delay_seconds)
            try:
                response = requests.get(
                    self.settings.noaa_base_url,
                    params=params,
                    headers=headers,
                    timeout=self.settings.request_timeout,
                )
            except requests.RequestException as e:
                raise NOAAFetchError(f"NOAA request failed: {e}") from e

            if response.status_code == HTTP_TOO_MANY_REQUESTS:
                if attempt >= self.settings.max_rate_limit_retries:
                    raise RateLimitError(
                        f"NOAA rate limit persisted after {attempt} retries "
                        f"({params['stationid']} {params['startdate']})"
                    )
                attempt += 1
                delay = self.settings.rate_limit_retry_delay_seconds
                logger.warning(f"NOAA rate limited; retry {attempt} in {delay:.1f}s...")
                time.sleep(delay)
                continue

            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                raise NOAAFetchError(f"NOAA request failed: {e}") from e

            # CDO answers an empty body or {} when there is no data
            if not response.content:
                return {}
            try:
                payload = response.json()
            except ValueError as e:
                raise NOAAFetchError(f"NOAA returned invalid JSON: {e}") from e
            if not isinstance(payload, dict):
                raise NOAAFetchError(f"NOAA returned {type(payload).__name__}, expected a JSON object")
            return payload

    def parse_results(
        self,
        results: list[dict],
        station: StationDefinition,
        ingested_at: datetime,
    ) -> list[ObservationRecord]:
        """Convert CDO result rows to records, skipping malformed rows.

        Args:
            results: ``results`` entries from CDO responses
            station: Station the results belong to
            ingested_at: Ingestion time stamped on each record

        Returns:
            List of ObservationRecord with depth in inches
        """
        records = []
        for row in results:
            if not isinstance(row, dict):
                logger.debug(f"Skipping non-object NOAA row for {station.name}: {row!r}")
                continue
            if row.get("datatype", SNOW_DEPTH_DATATYPE) != SNOW_DEPTH_DATATYPE:
                continue
            try:
                obs_date = datetime.strptime(str(row["date"])[:10], "%Y-%m-%d").date()
                value = float(row["value"])
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed NOAA row for {station.name}: {row}")
                continue
            if not math.isfinite(value) or value < 0:
                continue
            records.append(build_record(obs_date, station, mm_to_inches(value), ingested_at))
        return records
