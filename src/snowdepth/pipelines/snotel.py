"""SNOTEL snow depth adapter.

SNOTEL (Snow Telemetry) is the NRCS network of automated mountain stations.
Daily snow depth is pulled from the NRCS report generator as CSV, one request
per station triplet covering the whole date range. Report generator depths
are already in inches.

Report format (comment lines start with '#'):

    #------------------------------------------------- WARNING --
    # Provisional data, subject to revision.
    Date,Snow Depth (in) Start of Day Values
    2024-01-05,42
    2024-01-06,
"""

import csv
import io
import logging
import math
from datetime import datetime
from urllib.parse import quote

import pandas as pd

from snowdepth.exceptions import SnotelFetchError
from snowdepth.models import (
    DateRange,
    ObservationRecord,
    SourceType,
    StationDefinition,
    build_record,
)
from snowdepth.utils.base import SourceAdapter
from snowdepth.utils.io import read_text_lines

logger = logging.getLogger(__name__)

COMMENT_MARKER = "#"

# Element code for snow depth in the report generator
SNOW_DEPTH_ELEMENT = "SNWD::value"


def _well_formed(lines: list[str], station: StationDefinition) -> list[str]:
    """Keep the header and the data lines with as many fields as the header."""
    rows = list(csv.reader(lines))
    width = len(rows[0])
    kept = [lines[0]]
    for line, row in zip(lines[1:], rows[1:]):
        if len(row) != width:
            logger.debug(f"Skipping malformed SNOTEL line for {station.name}: {line!r}")
            continue
        kept.append(line)
    return kept


class SnotelAdapter(SourceAdapter):
    """Fetch daily snow depth for SNOTEL stations.

    Example:
        >>> adapter = SnotelAdapter(Settings())
        >>> records = adapter.fetch(station, DateRange.last_days(7, date.today()))
    """

    source = SourceType.AUTOMATED_SENSOR
    fetch_error = SnotelFetchError

    def build_url(self, triplet: str, date_range: DateRange) -> str:
        """Build the report generator CSV URL for one station."""
        station_spec = quote(f'{triplet}|id=""|name', safe=":=")
        period = f"{date_range.start.isoformat()},{date_range.end.isoformat()}"
        return f"{self.settings.snotel_base_url}/{station_spec}/{period}/{SNOW_DEPTH_ELEMENT}"

    def fetch(
        self, station: StationDefinition, date_range: DateRange
    ) -> list[ObservationRecord]:
        url = self.build_url(station.station_id, date_range)
        logger.debug(f"Fetching SNOTEL {station.station_id} ({date_range})")
        response = self._get(url)
        return self.parse_csv(response.text, station, self.clock())

    def parse_csv(
        self,
        text: str,
        station: StationDefinition,
        ingested_at: datetime,
    ) -> list[ObservationRecord]:
        """Parse a report generator CSV body into records.

        Comment lines are dropped first. Lines whose field count differs from
        the header are skipped, as are rows with an empty, non-numeric or
        negative depth.

        Args:
            text: CSV response body
            station: Station the report belongs to
            ingested_at: Ingestion time stamped on each record

        Returns:
            List of ObservationRecord (empty when the report has no data rows)
        """
        lines = read_text_lines(text, comment=COMMENT_MARKER)
        if len(lines) < 2:
            return []

        lines = _well_formed(lines, station)
        if len(lines) < 2:
            return []

        df = pd.read_csv(io.StringIO("\n".join(lines)), dtype=str, keep_default_na=False)
        if df.empty or len(df.columns) < 2:
            return []

        dates = pd.to_datetime(df.iloc[:, 0].str.strip(), errors="coerce")
        depths = pd.to_numeric(df.iloc[:, 1].str.strip(), errors="coerce")

        records = []
        for obs_date, depth in zip(dates, depths):
            if pd.isna(obs_date) or not math.isfinite(depth) or depth < 0:
                logger.debug(f"Skipping SNOTEL row for {station.name}: date={obs_date} depth={depth}")
                continue
            records.append(build_record(obs_date.date(), station, float(depth), ingested_at))

        return records
