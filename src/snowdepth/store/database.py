"""DuckDB observations table for snowdepth."""

import logging
import time
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import duckdb

from snowdepth.models import (
    OBSERVATION_COLUMNS,
    ObservationRecord,
    WriteMode,
    WriteResult,
    record_to_row,
    records_to_frame,
)
from snowdepth.utils.io import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

# Observations plus one fetch_log row per source run. Statements are split
# on ";" after comment lines are dropped, see schema_statements().
SCHEMA_SQL = """
CREATE SEQUENCE IF NOT EXISTS seq_fetch_log_id START 1;

-- One row per (date, station), month_rank filled by maintenance only
CREATE TABLE IF NOT EXISTS observations (
    date DATE NOT NULL,
    station VARCHAR NOT NULL,
    station_id VARCHAR,
    state VARCHAR,
    snow_depth_in DOUBLE,
    water_year INTEGER,
    day_of_wy INTEGER,
    month VARCHAR,
    month_num INTEGER,
    is_current_wy BOOLEAN,
    last_updated TIMESTAMP,
    source VARCHAR,
    month_rank INTEGER
);

-- records_written counts inserted plus updated observations
CREATE TABLE IF NOT EXISTS fetch_log (
    id INTEGER DEFAULT nextval('seq_fetch_log_id') PRIMARY KEY,
    source VARCHAR NOT NULL,
    run_at TIMESTAMP NOT NULL,
    status VARCHAR NOT NULL,
    records_written INTEGER,
    duration_ms INTEGER,
    error_message VARCHAR
);

CREATE INDEX IF NOT EXISTS idx_fetch_log_run_at ON fetch_log(run_at);
"""

# Attempts and base delay (seconds) when another process holds the file lock
LOCK_RETRIES = 3
LOCK_RETRY_DELAY = 0.5


def schema_statements(script: str) -> list[str]:
    """Split a SQL script into statements, ignoring ``--`` comment lines."""
    body = "\n".join(
        line for line in script.splitlines() if not line.lstrip().startswith("--")
    )
    return [s.strip() for s in body.split(";") if s.strip()]


_COLUMN_LIST = ", ".join(OBSERVATION_COLUMNS)
_PLACEHOLDERS = ", ".join("?" for _ in OBSERVATION_COLUMNS)

INSERT_SQL = f"INSERT INTO observations ({_COLUMN_LIST}) VALUES ({_PLACEHOLDERS})"

UPDATE_SQL = """
UPDATE observations SET
    station_id = ?,
    state = ?,
    snow_depth_in = ?,
    water_year = ?,
    day_of_wy = ?,
    month = ?,
    month_num = ?,
    is_current_wy = ?,
    last_updated = ?,
    source = ?
WHERE date = ? AND station = ?
"""

# Explicit casts so a pandas object column never widens the table types
APPEND_SQL = f"""
INSERT INTO observations ({_COLUMN_LIST})
SELECT
    CAST(date AS DATE),
    CAST(station AS VARCHAR),
    CAST(station_id AS VARCHAR),
    CAST(state AS VARCHAR),
    CAST(snow_depth_in AS DOUBLE),
    CAST(water_year AS INTEGER),
    CAST(day_of_wy AS INTEGER),
    CAST(month AS VARCHAR),
    CAST(month_num AS INTEGER),
    CAST(is_current_wy AS BOOLEAN),
    CAST(last_updated AS TIMESTAMP),
    CAST(source AS VARCHAR)
FROM incoming
"""


class ObservationStore:
    """DuckDB-backed observations table.

    Two write paths:
    - ``append``: bulk insert with no key checks, for backfills into an
      empty table
    - ``upsert``: per-record update-or-insert keyed by (date, station)

    Example:
        >>> store = ObservationStore(Path("snow.duckdb"))
        >>> store.write(records, WriteMode.UPSERT)
        WriteResult(inserted=12, updated=3)
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: Path to DuckDB file. Creates if doesn't exist.
        """
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._init_schema()

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Open the DuckDB file on first use."""
        if self._conn is None:
            self._conn = self._open()
        return self._conn

    def _open(self) -> duckdb.DuckDBPyConnection:
        """Connect, waiting out a lock held by a concurrent run.

        The daily job and an operator's ``--status`` can overlap; only lock
        errors are retried, anything else propagates immediately.
        """
        for attempt in range(1, LOCK_RETRIES + 1):
            try:
                return duckdb.connect(str(self.db_path))
            except duckdb.IOException as e:
                if "lock" not in str(e).lower() or attempt == LOCK_RETRIES:
                    raise
                delay = LOCK_RETRY_DELAY * attempt
                logger.warning(f"{self.db_path} is locked, attempt {attempt}/{LOCK_RETRIES}; waiting {delay}s")
                time.sleep(delay)

    def _init_schema(self) -> None:
        for statement in schema_statements(SCHEMA_SQL):
            self.conn.execute(statement)
        logger.info(f"Observation store initialized at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def write(self, records: list[ObservationRecord], mode: WriteMode) -> WriteResult:
        """Write a batch using the given mode."""
        if mode == WriteMode.APPEND:
            return self.append(records)
        return self.upsert(records)

    def append(self, records: list[ObservationRecord]) -> WriteResult:
        """Bulk insert records without checking for existing keys.

        Only safe when the target range is known to be empty (initial
        backfill); otherwise duplicates are created.
        """
        if not records:
            return WriteResult()

        df = records_to_frame(records)
        self.conn.register("incoming", df)
        try:
            self.conn.execute(APPEND_SQL)
        finally:
            self.conn.unregister("incoming")

        logger.info(f"Appended {len(records)} observations")
        return WriteResult(inserted=len(records))

    def _existing_keys(self) -> set[tuple[date, str]]:
        rows = self.conn.execute("SELECT DISTINCT date, station FROM observations").fetchall()
        return {(row[0], row[1]) for row in rows}

    def upsert(self, records: list[ObservationRecord]) -> WriteResult:
        """Update-or-insert each record keyed by (date, station).

        Existing keys are read once into a set before the batch is applied,
        so each incoming record costs one lookup plus one single-row
        statement. Later records in the same batch win over earlier ones.
        """
        if not records:
            return WriteResult()

        existing = self._existing_keys()
        result = WriteResult()

        for record in records:
            row = record_to_row(record)
            if record.key in existing:
                # Everything but the key columns, then the key for WHERE
                self.conn.execute(UPDATE_SQL, row[2:] + [record.date, record.station_name])
                result.updated += 1
            else:
                self.conn.execute(INSERT_SQL, row)
                existing.add(record.key)
                result.inserted += 1

        logger.info(f"Upserted {len(records)} observations ({result.inserted} new, {result.updated} updated)")
        return result

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_observation(self, obs_date: date, station: str) -> Optional[dict]:
        """Get the stored row for one (date, station), or None."""
        result = self.conn.execute(
            f"SELECT {_COLUMN_LIST}, month_rank FROM observations WHERE date = ? AND station = ?",
            [obs_date, station],
        ).fetchone()

        if result is None:
            return None
        return dict(zip(OBSERVATION_COLUMNS + ["month_rank"], result))

    def count(self, source: Optional[str] = None) -> int:
        """Count stored observations, optionally for one source."""
        if source is None:
            return self.conn.execute("SELECT COUNT(*) FROM observations").fetchone()[0]
        return self.conn.execute(
            "SELECT COUNT(*) FROM observations WHERE source = ?", [source]
        ).fetchone()[0]

    # -------------------------------------------------------------------------
    # Logging Operations
    # -------------------------------------------------------------------------

    def log_fetch(
        self,
        source: str,
        status: str,
        records_written: int,
        duration_ms: int,
        error_message: Optional[str] = None,
    ) -> None:
        """Append one source run to fetch_log.

        Args:
            source: Source value, e.g. "SNOTEL"
            status: "success" or "error"
            records_written: Observations inserted plus updated
            duration_ms: Wall-clock time of the run
            error_message: Failure reason for error runs
        """
        self.conn.execute(
            """
            INSERT INTO fetch_log (source, run_at, status, records_written, duration_ms, error_message)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [source, datetime.now(), status, records_written, duration_ms, error_message],
        )

    def get_stats(self) -> dict:
        """Observation count, newest dates and the most recent source run."""
        latest_date, latest_update = self.conn.execute(
            "SELECT MAX(date), MAX(last_updated) FROM observations"
        ).fetchone()
        last_fetch = self.conn.execute(
            "SELECT source, run_at, status FROM fetch_log ORDER BY id DESC LIMIT 1"
        ).fetchone()

        return {
            "observation_count": self.count(),
            "latest_date": latest_date,
            "latest_update": latest_update,
            "last_fetch": last_fetch,
            "db_path": str(self.db_path),
        }
