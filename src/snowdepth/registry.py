"""Station registry accessor.

Station definitions are maintained by an operator in a spreadsheet and
exported as CSV. The registry reads that export, filters to active stations
of one source, and normalizes station IDs once so downstream code only ever
sees canonical StationDefinition objects.

Two row shapes exist for SNOTEL stations:
- legacy rows whose ID already holds the full triplet ("1050:CO:SNTL")
- newer rows with a bare ID ("1050") that needs state and network appended
"""

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from snowdepth.config import Settings
from snowdepth.models import SourceType, StationDefinition

logger = logging.getLogger(__name__)

TRIPLET_DELIMITER = ":"
NOAA_ID_PREFIX = "GHCND:"

# Spreadsheet header (normalized) -> StationDefinition field
COLUMN_ALIASES = {
    "id": "station_id",
    "station_id": "station_id",
    "stationid": "station_id",
    "triplet": "station_id",
    "name": "name",
    "station": "name",
    "station_name": "name",
    "state": "state",
    "source": "source",
    "type": "source",
    "elevation": "elevation",
    "elev": "elevation",
    "office": "office",
    "wfo": "office",
    "search_term": "search_term",
    "searchterm": "search_term",
    "search": "search_term",
    "active": "active",
    "enabled": "active",
}

TRUTHY = {"true", "yes", "y", "1", "x", "active"}


def _normalize_header(header: str) -> str:
    key = str(header).strip().lower().replace(" ", "_").replace("-", "_")
    return COLUMN_ALIASES.get(key, key)


def _cell(row: pd.Series, column: str) -> Optional[str]:
    """Return a stripped string cell, or None for missing/blank cells."""
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _is_active(value) -> bool:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return False
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    # Numeric cells come back from CSV as floats ("1.0")
    if text.endswith(".0"):
        text = text[:-2]
    return text in TRUTHY


def _parse_elevation(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value.replace(",", ""))
    except ValueError:
        return None


class StationRegistry:
    """Read-only view of the station configuration sheet.

    Example:
        >>> registry = StationRegistry(Settings())
        >>> stations = registry.list_active_stations(SourceType.AUTOMATED_SENSOR)
    """

    def __init__(self, settings: Settings, frame: Optional[pd.DataFrame] = None):
        """Initialize the registry.

        Args:
            settings: Runtime settings; ``stations_path`` locates the CSV export
            frame: Preloaded sheet contents. When given, the file is not read.
        """
        self.settings = settings
        self._frame = frame

    @property
    def path(self) -> Path:
        return Path(self.settings.stations_path)

    def _load(self) -> pd.DataFrame:
        """Load the sheet, returning an empty frame when it is absent."""
        if self._frame is not None:
            df = self._frame
        elif not self.path.exists():
            logger.warning(f"Station registry not found at {self.path}")
            return pd.DataFrame()
        else:
            try:
                df = pd.read_csv(self.path, dtype=str, keep_default_na=False)
            except pd.errors.EmptyDataError:
                logger.warning(f"Station registry {self.path} is empty")
                return pd.DataFrame()

        df = df.copy()
        df.columns = [_normalize_header(c) for c in df.columns]
        return df

    def list_active_stations(self, source: SourceType) -> list[StationDefinition]:
        """Return active stations configured for ``source``.

        Rows missing a name or ID are skipped. An absent or empty registry
        yields an empty list.

        Args:
            source: Source type to filter on

        Returns:
            List of StationDefinition in sheet order
        """
        df = self._load()
        if df.empty or "source" not in df.columns:
            return []

        stations = []
        for _, row in df.iterrows():
            raw_source = _cell(row, "source")
            if raw_source is None:
                continue
            try:
                row_source = SourceType.parse(raw_source)
            except ValueError:
                logger.debug(f"Skipping row with unknown source {raw_source!r}")
                continue
            if row_source != source:
                continue
            if "active" in df.columns and not _is_active(row.get("active")):
                continue

            name = _cell(row, "name")
            station_id = _cell(row, "station_id")
            if name is None or station_id is None:
                continue

            station = self._to_definition(row, name, station_id, source)
            if station is not None:
                stations.append(station)

        logger.info(f"Found {len(stations)} active {source.value} stations")
        return stations

    def _to_definition(
        self,
        row: pd.Series,
        name: str,
        station_id: str,
        source: SourceType,
    ) -> Optional[StationDefinition]:
        state = (_cell(row, "state") or "").upper()
        office = _cell(row, "office")
        search_term = _cell(row, "search_term")

        if source == SourceType.AUTOMATED_SENSOR:
            if TRIPLET_DELIMITER in station_id:
                # Legacy row: ID already carries the triplet
                parts = station_id.split(TRIPLET_DELIMITER)
                if not state and len(parts) > 1:
                    state = parts[1].upper()
            elif not state:
                logger.warning(f"SNOTEL station {name} has a bare ID and no state; skipping")
                return None
            else:
                station_id = TRIPLET_DELIMITER.join(
                    [station_id, state, self.settings.snotel_network]
                )
        elif source == SourceType.FEDERAL_API:
            if not station_id.upper().startswith(NOAA_ID_PREFIX):
                station_id = f"{NOAA_ID_PREFIX}{station_id}"
        elif source == SourceType.STATE_SENSOR:
            station_id = station_id.upper()
        elif source == SourceType.FEDERAL_BULLETIN:
            if office is None or search_term is None:
                logger.warning(f"Bulletin station {name} has no office or search term; skipping")
                return None
            office = office.upper()

        return StationDefinition(
            name=name,
            station_id=station_id,
            state=state,
            source=source,
            elevation=_parse_elevation(_cell(row, "elevation")),
            office=office,
            search_term=search_term,
        )
