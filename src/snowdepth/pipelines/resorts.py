"""Ski resort conditions feed adapter.

Resorts self-report base depth through a JSON conditions feed queried by
region (state). The feed only knows today's conditions, so there is no
backfill for this source: every call yields current-day records.

Depth comes from the best field available, in order:
    max_base_depth -> min_base_depth -> surface_conditions
A field that is missing, non-numeric or not positive falls through to the
next one. Resorts with no positive depth are not emitted.
"""

import logging
import math
import re
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional

from snowdepth.exceptions import FetchError, MissingCredentialError, ResortFeedFetchError
from snowdepth.models import (
    DateRange,
    ObservationRecord,
    SourceType,
    StationDefinition,
    build_record,
)
from snowdepth.utils.base import SourceAdapter

logger = logging.getLogger(__name__)

# Each entry lists accepted spellings of one depth field, in priority order
DEPTH_FIELDS = [
    ("max_base_depth", "maxBaseDepth", "base_depth_max"),
    ("min_base_depth", "minBaseDepth", "base_depth_min"),
    ("surface_conditions", "surfaceConditions", "surface_depth"),
]
ID_FIELDS = ("id", "resort_id", "resortId", "slug")
FIRST_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def _as_depth(value: Any) -> Optional[float]:
    """Interpret a feed value as a positive depth, else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        depth = float(value)
    else:
        match = FIRST_NUMBER.search(str(value))
        if not match:
            return None
        depth = float(match.group(0))
    return depth if math.isfinite(depth) and depth > 0 else None


def best_depth(resort: dict) -> Optional[float]:
    """Pick the highest-priority positive depth reported for a resort.

    Example:
        >>> best_depth({"max_base_depth": 0, "min_base_depth": 12})
        12.0
    """
    conditions = resort.get("conditions") if isinstance(resort.get("conditions"), dict) else {}
    for spellings in DEPTH_FIELDS:
        for key in spellings:
            value = resort.get(key, conditions.get(key))
            depth = _as_depth(value)
            if depth is not None:
                return depth
    return None


def resort_list(payload: Any) -> list[dict]:
    """Extract the resort list from a bare-list or wrapped feed payload."""
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        items = payload.get("resorts") or payload.get("data") or []
    else:
        items = []
    return [item for item in items if isinstance(item, dict)]


def _resort_keys(resort: dict) -> set[str]:
    keys = {str(resort[f]).strip().lower() for f in ID_FIELDS if resort.get(f) is not None}
    if resort.get("name"):
        keys.add(str(resort["name"]).strip().lower())
    return keys


class ResortFeedAdapter(SourceAdapter):
    """Fetch current base depth for configured resorts, one request per state."""

    source = SourceType.RESORT_FEED
    fetch_error = ResortFeedFetchError

    def fetch_region(self, region: str) -> list[dict]:
        """Download the feed for one region and return its resort entries."""
        if not self.settings.resort_feed_url or not self.settings.resort_api_key:
            raise MissingCredentialError(
                "SNOWDEPTH_RESORT_FEED_URL and SNOWDEPTH_RESORT_API_KEY are required "
                "for the resort source"
            )

        url = self.settings.resort_feed_url.format(region=region)
        response = self._get(url, params={"apikey": self.settings.resort_api_key, "region": region})
        try:
            payload = response.json()
        except ValueError as e:
            raise ResortFeedFetchError(f"Resort feed for {region} returned invalid JSON: {e}") from e
        return resort_list(payload)

    def records_from_feed(
        self,
        resorts: list[dict],
        stations: list[StationDefinition],
        ingested_at: datetime,
    ) -> list[ObservationRecord]:
        """Match feed entries to configured resorts and emit positive depths."""
        index: dict[str, dict] = {}
        for resort in resorts:
            for key in _resort_keys(resort):
                index.setdefault(key, resort)

        records = []
        for station in stations:
            resort = index.get(station.station_id.lower()) or index.get(station.name.lower())
            if resort is None:
                logger.info(f"{station.name}: not present in {station.state} feed")
                continue
            depth = best_depth(resort)
            if depth is None:
                logger.debug(f"{station.name}: no positive base depth reported")
                continue
            records.append(build_record(ingested_at.date(), station, depth, ingested_at))
        return records

    def fetch(
        self, station: StationDefinition, date_range: DateRange
    ) -> list[ObservationRecord]:
        resorts = self.fetch_region(station.state)
        return self.records_from_feed(resorts, [station], self.clock())

    def fetch_all(
        self, stations: list[StationDefinition], date_range: DateRange
    ) -> list[ObservationRecord]:
        """Fetch each state's feed once and read all configured resorts in it.

        Raises:
            ResortFeedFetchError: The last error, if every region failed
        """
        by_region: dict[str, list[StationDefinition]] = defaultdict(list)
        for station in stations:
            by_region[station.state].append(station)

        ingested_at = self.clock()
        records: list[ObservationRecord] = []
        failures: list[FetchError] = []
        total = len(by_region)

        for i, (region, region_stations) in enumerate(by_region.items(), 1):
            if i > 1:
                self._pause()
            try:
                resorts = self.fetch_region(region)
            except FetchError as e:
                logger.error(f"[{i}/{total}] region {region}: failed - {e}")
                failures.append(e)
                continue

            region_records = self.records_from_feed(resorts, region_stations, ingested_at)
            logger.info(
                f"[{i}/{total}] region {region}: "
                f"{len(region_records)}/{len(region_stations)} resorts reported"
            )
            records.extend(region_records)

        if total and len(failures) == total:
            raise failures[-1]

        return records
