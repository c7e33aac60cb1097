"""Data models for the snow-depth ingestion pipeline."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterator, Optional

import pandas as pd

from snowdepth.utils.water_year import (
    day_of_water_year,
    month_name,
    water_year,
    water_year_start,
)


class SourceType(str, Enum):
    """Observation sources. Values are what lands in the ``source`` column."""

    AUTOMATED_SENSOR = "SNOTEL"
    FEDERAL_API = "NOAA"
    FEDERAL_BULLETIN = "NWS"
    STATE_SENSOR = "CDEC"
    RESORT_FEED = "RESORT"

    @classmethod
    def parse(cls, value: str) -> "SourceType":
        """Parse a source from either its member name or its stored value.

        Raises:
            ValueError: If the value matches no source
        """
        key = str(value).strip().upper()
        for member in cls:
            if key in (member.name, member.value):
                return member
        raise ValueError(f"Unknown source type: {value!r}")


class WriteMode(str, Enum):
    """How a batch of records is written to the observations table."""

    APPEND = "append"
    UPSERT = "upsert"


@dataclass(frozen=True)
class StationDefinition:
    """A configured station, normalized at registry-read time.

    Attributes:
        name: Display name, part of the (date, station) natural key
        station_id: Canonical source-specific ID (SNOTEL triplet,
            ``GHCND:``-prefixed NOAA ID, bare CDEC code, resort feed ID)
        state: Two-letter state code
        source: Source type this station is fetched from
        elevation: Elevation in feet, if known
        office: NWS reporting office (bulletin stations only)
        search_term: Text identifying the station's bulletin line
    """

    name: str
    station_id: str
    state: str
    source: SourceType
    elevation: Optional[float] = None
    office: Optional[str] = None
    search_term: Optional[str] = None


@dataclass
class ObservationRecord:
    """One daily snow-depth observation in the canonical schema."""

    date: date
    station_name: str
    station_id: str
    state: str
    snow_depth_in: float
    water_year: int
    day_of_water_year: int
    month_name: str
    month_num: int
    is_current_water_year: bool
    last_updated: datetime
    source: SourceType

    @property
    def key(self) -> tuple[date, str]:
        """Natural key used for upserts."""
        return (self.date, self.station_name)


def build_record(
    obs_date: date,
    station: StationDefinition,
    snow_depth_in: float,
    ingested_at: datetime,
) -> ObservationRecord:
    """Create an ObservationRecord with all date-derived fields filled in.

    Args:
        obs_date: Observation day
        station: Station the reading belongs to
        snow_depth_in: Snow depth in inches (must be >= 0)
        ingested_at: Ingestion wall-clock time

    Raises:
        ValueError: If snow_depth_in is negative
    """
    if snow_depth_in < 0:
        raise ValueError(f"Negative snow depth {snow_depth_in} for {station.name}")

    return ObservationRecord(
        date=obs_date,
        station_name=station.name,
        station_id=station.station_id,
        state=station.state,
        snow_depth_in=float(snow_depth_in),
        water_year=water_year(obs_date),
        day_of_water_year=day_of_water_year(obs_date),
        month_name=month_name(obs_date),
        month_num=obs_date.month,
        is_current_water_year=water_year(obs_date) == water_year(ingested_at.date()),
        last_updated=ingested_at,
        source=station.source,
    )


# Column order of the observations table
OBSERVATION_COLUMNS = [
    "date",
    "station",
    "station_id",
    "state",
    "snow_depth_in",
    "water_year",
    "day_of_wy",
    "month",
    "month_num",
    "is_current_wy",
    "last_updated",
    "source",
]


def record_to_row(record: ObservationRecord) -> list:
    """Flatten a record into observations-table column order."""
    return [
        record.date,
        record.station_name,
        record.station_id,
        record.state,
        record.snow_depth_in,
        record.water_year,
        record.day_of_water_year,
        record.month_name,
        record.month_num,
        record.is_current_water_year,
        record.last_updated,
        record.source.value,
    ]


def records_to_frame(records: list[ObservationRecord]) -> pd.DataFrame:
    """Convert records to a DataFrame with observations-table columns."""
    if not records:
        return pd.DataFrame(columns=OBSERVATION_COLUMNS)
    return pd.DataFrame([record_to_row(r) for r in records], columns=OBSERVATION_COLUMNS)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of observation dates."""

    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")

    @classmethod
    def last_days(cls, days: int, today: date) -> "DateRange":
        """Range covering the last ``days`` days, ending today."""
        return cls(today - timedelta(days=days), today)

    @classmethod
    def water_years_back(cls, years: int, today: date) -> "DateRange":
        """Range covering ``years`` complete water years plus the current one.

        Example:
            On 2026-10-18 (WY2027) with years=2 the range starts 2024-10-01.
        """
        return cls(water_year_start(water_year(today) - years), today)

    def calendar_years(self) -> Iterator["DateRange"]:
        """Split into consecutive sub-ranges that never cross a calendar year."""
        for year in range(self.start.year, self.end.year + 1):
            yield DateRange(
                max(self.start, date(year, 1, 1)),
                min(self.end, date(year, 12, 31)),
            )

    def __str__(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


@dataclass(frozen=True)
class BulletinReading:
    """Result of searching a bulletin for one station's snow depth.

    ``found`` distinguishes "no matching line/value" from a genuine 0 reading.
    """

    found: bool
    value: Optional[float] = None

    @classmethod
    def not_found(cls) -> "BulletinReading":
        return cls(found=False)

    @classmethod
    def of(cls, value: float) -> "BulletinReading":
        return cls(found=True, value=value)


@dataclass
class WriteResult:
    """Rows touched by a write to the observations table."""

    inserted: int = 0
    updated: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.updated
