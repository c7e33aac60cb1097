"""NWS text bulletin snow depth adapter.

Regional NWS offices publish free-text products (by default the RTP
regional temperature/precipitation table) that include same-day snow depth
for a handful of sites. One bulletin is fetched per reporting office, and
each configured station pulls its value from the line containing its
search term.

The line format drifts between offices and over time, so extraction is a
heuristic: scan tokens after the search term right to left and take the
first plain number in [0, 500]; failing that, take a trailing integer. A
miss means "no data today", never an error.
"""

import html
import logging
import re
from collections import defaultdict
from datetime import datetime

from snowdepth.exceptions import BulletinFetchError, FetchError
from snowdepth.models import (
    BulletinReading,
    DateRange,
    ObservationRecord,
    SourceType,
    StationDefinition,
    build_record,
)
from snowdepth.utils.base import SourceAdapter

logger = logging.getLogger(__name__)

MIN_DEPTH_IN = 0.0
MAX_DEPTH_IN = 500.0

NUMBER_TOKEN = re.compile(r"^\d+(?:\.\d+)?$")
TRAILING_INTEGER = re.compile(r"(\d+)\D*$")
PRE_BLOCK = re.compile(r"<pre[^>]*>(.*?)</pre>", re.IGNORECASE | re.DOTALL)


def _in_range(value: float) -> bool:
    return MIN_DEPTH_IN <= value <= MAX_DEPTH_IN


def _extract_from_line(remainder: str) -> BulletinReading:
    for token in reversed(remainder.split()):
        if NUMBER_TOKEN.match(token):
            value = float(token)
            if _in_range(value):
                return BulletinReading.of(value)

    match = TRAILING_INTEGER.search(remainder)
    if match:
        value = float(match.group(1))
        if _in_range(value):
            return BulletinReading.of(value)

    return BulletinReading.not_found()


def extract_snow_depth(bulletin: str, search_term: str) -> BulletinReading:
    """Find a station's snow depth in a bulletin.

    Only text after the search term is scanned, so digits in the station
    label itself are never mistaken for a reading.

    Args:
        bulletin: Bulletin plain text
        search_term: Case-insensitive text identifying the station's line

    Returns:
        BulletinReading; ``found`` is False when no line or value matched

    Example:
        >>> extract_snow_depth("ALTA GUARD  14 22 0 18", "ALTA GUARD")
        BulletinReading(found=True, value=18.0)
    """
    needle = search_term.strip().lower()
    if not needle:
        return BulletinReading.not_found()

    for line in bulletin.splitlines():
        idx = line.lower().find(needle)
        if idx < 0:
            continue
        reading = _extract_from_line(line[idx + len(needle):])
        if reading.found:
            return reading

    return BulletinReading.not_found()


def bulletin_text(body: str) -> str:
    """Strip the HTML wrapper forecast.weather.gov puts around product text."""
    match = PRE_BLOCK.search(body)
    if match:
        return html.unescape(match.group(1))
    return body


class BulletinAdapter(SourceAdapter):
    """Scrape same-day snow depth from NWS office bulletins.

    Bulletins carry only the current day, so the date range is ignored and
    every record is dated today.
    """

    source = SourceType.FEDERAL_BULLETIN
    fetch_error = BulletinFetchError

    def fetch_bulletin(self, office: str) -> str:
        """Download the configured product for one reporting office."""
        params = {
            "site": "NWS",
            "issuedby": office,
            "product": self.settings.bulletin_product,
            "format": "txt",
            "version": 1,
            "glossary": 0,
        }
        response = self._get(self.settings.bulletin_url, params=params)
        return bulletin_text(response.text)

    def records_from_bulletin(
        self,
        bulletin: str,
        stations: list[StationDefinition],
        ingested_at: datetime,
    ) -> list[ObservationRecord]:
        """Extract one record per station that has a reading in the bulletin."""
        records = []
        for station in stations:
            reading = extract_snow_depth(bulletin, station.search_term or "")
            if not reading.found:
                logger.info(f"{station.name}: no reading in {station.office} bulletin")
                continue
            records.append(build_record(ingested_at.date(), station, reading.value, ingested_at))
        return records

    def fetch(
        self, station: StationDefinition, date_range: DateRange
    ) -> list[ObservationRecord]:
        bulletin = self.fetch_bulletin(station.office)
        return self.records_from_bulletin(bulletin, [station], self.clock())

    def fetch_all(
        self, stations: list[StationDefinition], date_range: DateRange
    ) -> list[ObservationRecord]:
        """Fetch each reporting office's bulletin once and read all its stations.

        Raises:
            BulletinFetchError: The last error, if every office failed
        """
        by_office: dict[str, list[StationDefinition]] = defaultdict(list)
        for station in stations:
            by_office[station.office].append(station)

        ingested_at = self.clock()
        records: list[ObservationRecord] = []
        failures: list[FetchError] = []
        total = len(by_office)

        for i, (office, office_stations) in enumerate(by_office.items(), 1):
            if i > 1:
                self._pause()
            try:
                bulletin = self.fetch_bulletin(office)
            except FetchError as e:
                logger.error(f"[{i}/{total}] office {office}: failed - {e}")
                failures.append(e)
                continue

            office_records = self.records_from_bulletin(bulletin, office_stations, ingested_at)
            logger.info(
                f"[{i}/{total}] office {office}: "
                f"{len(office_records)}/{len(office_stations)} stations reported"
            )
            records.extend(office_records)

        if total and len(failures) == total:
            raise failures[-1]

        return records
