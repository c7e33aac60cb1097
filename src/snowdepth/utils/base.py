"""Base classes for source adapters."""

import logging
import time
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import requests

from snowdepth.config import Settings
from snowdepth.exceptions import FetchError
from snowdepth.models import DateRange, ObservationRecord, SourceType, StationDefinition

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of data validation.

    Attributes:
        valid: Whether the data passed all validation checks
        total_rows: Total number of records in the batch
        outliers_count: Number of records with impossible depth values
        issues: List of validation issues found
        stats: Dictionary of summary statistics
    """

    valid: bool
    total_rows: int
    outliers_count: int = 0
    issues: list[str] = field(default_factory=list)
    stats: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        status = "VALID" if self.valid else "INVALID"
        return (
            f"ValidationResult({status}, "
            f"rows={self.total_rows}, "
            f"outliers={self.outliers_count})"
        )


class SourceAdapter(ABC):
    """Abstract base class for all snow-depth source adapters.

    Subclasses implement ``fetch`` for a single station. ``fetch_all`` walks
    the configured stations sequentially, sleeping between calls to stay
    under the upstream rate limits, and isolates per-station failures.
    """

    source: SourceType
    fetch_error: type[FetchError] = FetchError

    # Depths above this are treated as sensor garbage during validation
    MAX_PLAUSIBLE_DEPTH_IN = 500.0

    def __init__(
        self,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the adapter.

        Args:
            settings: Runtime settings (endpoints, credentials, delays)
            clock: Returns the ingestion wall-clock time. Defaults to datetime.now
        """
        self.settings = settings
        self.clock = clock or datetime.now

    @abstractmethod
    def fetch(
        self, station: StationDefinition, date_range: DateRange
    ) -> list[ObservationRecord]:
        """Fetch and normalize observations for one station.

        Args:
            station: Station to fetch
            date_range: Inclusive observation date range

        Returns:
            List of ObservationRecord, possibly empty

        Raises:
            FetchError: Adapter-specific subclass on network/HTTP failure
        """
        pass

    def _get(self, url: str, params: Optional[dict] = None, **kwargs) -> requests.Response:
        """GET a URL, translating transport and HTTP errors into ``fetch_error``."""
        try:
            response = requests.get(
                url,
                params=params,
                headers=self.settings.http_headers,
                timeout=self.settings.request_timeout,
                **kwargs,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise self.fetch_error(f"{self.source.value} request to {url} failed: {e}") from e
        return response

    def _pause(self, seconds: Optional[float] = None) -> None:
        delay = self.settings.station_delay_seconds if seconds is None else seconds
        if delay > 0:
            time.sleep(delay)

    def fetch_all(
        self, stations: list[StationDefinition], date_range: DateRange
    ) -> list[ObservationRecord]:
        """Fetch every station in turn, skipping stations that fail.

        A transport error or a response the parser chokes on fails only that
        station; it is logged and the remaining stations still run.

        Args:
            stations: Stations to fetch
            date_range: Inclusive observation date range

        Returns:
            Combined list of records from all successful stations

        Raises:
            FetchError: The last error, if every station failed
        """
        records: list[ObservationRecord] = []
        failures: list[FetchError] = []
        total = len(stations)

        for i, station in enumerate(stations, 1):
            if i > 1:
                self._pause()
            try:
                station_records = self.fetch(station, date_range)
            except FetchError as e:
                logger.error(f"[{i}/{total}] {station.name}: failed - {e}")
                failures.append(e)
                continue
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                # Response shape the parser did not anticipate
                error = self.fetch_error(f"Unparseable response for {station.name}: {e!r}")
                error.__cause__ = e
                logger.error(f"[{i}/{total}] {station.name}: failed - {error}")
                failures.append(error)
                continue

            logger.info(f"[{i}/{total}] {station.name}: {len(station_records)} records")
            records.extend(station_records)

        if total and len(failures) == total:
            raise failures[-1]

        return records

    def validate(self, records: list[ObservationRecord]) -> ValidationResult:
        """Validate a batch of normalized records.

        Args:
            records: Records produced by fetch/fetch_all

        Returns:
            ValidationResult with quality metrics
        """
        issues = []

        outliers = [
            r for r in records
            if r.snow_depth_in < 0 or r.snow_depth_in > self.MAX_PLAUSIBLE_DEPTH_IN
        ]
        if outliers:
            issues.append(f"Implausible snow depth values: {len(outliers)}")

        key_counts = Counter(r.key for r in records)
        duplicates = sum(1 for count in key_counts.values() if count > 1)
        if duplicates:
            issues.append(f"Duplicate (date, station) keys in batch: {duplicates}")

        dates = [r.date for r in records]
        stats = {
            "stations": len({r.station_name for r in records}),
            "date_range": (min(dates).isoformat(), max(dates).isoformat()) if dates else (None, None),
        }

        return ValidationResult(
            valid=not issues,
            total_rows=len(records),
            outliers_count=len(outliers),
            issues=issues,
            stats=stats,
        )
