"""CDEC snow depth adapter.

The California Data Exchange Center serves sensor data as CSV through its
CSVDataServlet. Snow depth is sensor 18, requested at daily duration:

    STATION_ID,DURATION,SENSOR_NUMBER,SENS_TYPE,DATE TIME,OBS DATE,VALUE,DATA_FLAG,UNITS
    BLC,D,18,SNOW DP,20240105 0000,20240105 0000,42, ,INCHES

Older responses and some mirrors write the date as "1/5/2024 00:00", so both
encodings are accepted. Missing readings come back as -9999 or "---".
"""

import csv
import io
import logging
import math
from datetime import date, datetime
from typing import Optional

from snowdepth.exceptions import CDECFetchError
from snowdepth.models import (
    DateRange,
    ObservationRecord,
    SourceType,
    StationDefinition,
    build_record,
)
from snowdepth.utils.base import SourceAdapter

logger = logging.getLogger(__name__)

MIN_COLUMNS = 7
DATE_COLUMN = 4
VALUE_COLUMN = 6


def parse_cdec_date(text: str) -> Optional[date]:
    """Parse a CDEC date cell in either slash or compact YYYYMMDD form.

    Example:
        >>> parse_cdec_date("20240105 0000")
        datetime.date(2024, 1, 5)
        >>> parse_cdec_date("1/5/2024 00:00")
        datetime.date(2024, 1, 5)
    """
    day = text.strip().split(" ")[0]
    try:
        if "/" in day:
            return datetime.strptime(day, "%m/%d/%Y").date()
        return datetime.strptime(day[:8], "%Y%m%d").date()
    except ValueError:
        return None


class CDECAdapter(SourceAdapter):
    """Fetch daily snow depth for CDEC stations over an arbitrary range."""

    source = SourceType.STATE_SENSOR
    fetch_error = CDECFetchError

    def fetch(
        self, station: StationDefinition, date_range: DateRange
    ) -> list[ObservationRecord]:
        params = {
            "Stations": station.station_id,
            "SensorNums": self.settings.cdec_sensor_code,
            "dur_code": self.settings.cdec_duration_code,
            "Start": date_range.start.isoformat(),
            "End": date_range.end.isoformat(),
        }
        logger.debug(f"Fetching CDEC {station.station_id} ({date_range})")
        response = self._get(self.settings.cdec_base_url, params=params)
        return self.parse_csv(response.text, station, self.clock())

    def parse_csv(
        self,
        text: str,
        station: StationDefinition,
        ingested_at: datetime,
    ) -> list[ObservationRecord]:
        """Parse a CSVDataServlet body into records.

        The header row and any row shorter than MIN_COLUMNS are skipped, as
        are rows with unparseable dates or missing/negative values.
        """
        records = []
        reader = csv.reader(io.StringIO(text))
        next(reader, None)

        for row in reader:
            if len(row) < MIN_COLUMNS:
                continue
            obs_date = parse_cdec_date(row[DATE_COLUMN])
            if obs_date is None:
                logger.debug(f"Skipping CDEC row with bad date for {station.name}: {row}")
                continue
            try:
                value = float(row[VALUE_COLUMN])
            except ValueError:
                continue
            if not math.isfinite(value) or value < 0:
                continue
            records.append(build_record(obs_date, station, value, ingested_at))

        return records
