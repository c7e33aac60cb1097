"""Out-of-band maintenance for the observations table.

None of this runs as part of daily ingestion except the current-water-year
flag refresh. ``month_rank`` in particular is only ever written here: the
ingestion path leaves it NULL until an operator recomputes ranks.
"""

import logging
from datetime import date

import pandas as pd

from snowdepth.store.database import ObservationStore
from snowdepth.utils.water_year import water_year

logger = logging.getLogger(__name__)

# Rank each (station, month, water_year) by total depth against the same
# station and month in every other water year
MONTH_RANK_SQL = """
UPDATE observations AS o
SET month_rank = r.month_rank
FROM (
    SELECT station, month_num, water_year,
        RANK() OVER (
            PARTITION BY station, month_num
            ORDER BY SUM(snow_depth_in) DESC
        ) AS month_rank
    FROM observations
    GROUP BY station, month_num, water_year
) AS r
WHERE o.station = r.station
  AND o.month_num = r.month_num
  AND o.water_year = r.water_year
"""

# Keep the newest row per (date, station, station_id)
DEDUPE_SQL = """
DELETE FROM observations
WHERE rowid IN (
    SELECT rowid FROM (
        SELECT rowid,
            ROW_NUMBER() OVER (
                PARTITION BY date, station, station_id
                ORDER BY last_updated DESC
            ) AS rn
        FROM observations
    )
    WHERE rn > 1
)
"""


def recompute_month_rank(store: ObservationStore) -> int:
    """Recompute month_rank for every row.

    Returns:
        Number of rows ranked
    """
    store.conn.execute(MONTH_RANK_SQL)
    ranked = store.conn.execute(
        "SELECT COUNT(*) FROM observations WHERE month_rank IS NOT NULL"
    ).fetchone()[0]
    logger.info(f"Recomputed month_rank for {ranked} rows")
    return ranked


def remove_duplicates(store: ObservationStore) -> int:
    """Delete all but the most recently updated row per (date, station, station_id).

    Returns:
        Number of rows deleted
    """
    before = store.count()
    store.conn.execute(DEDUPE_SQL)
    deleted = before - store.count()
    logger.info(f"Removed {deleted} duplicate observations")
    return deleted


def merge_station_aliases(store: ObservationStore, aliases: dict[str, str]) -> int:
    """Rename stations so readings filed under an old name join the canonical one.

    Rows that would collide with an existing (date, canonical name) row are
    dropped in favour of the canonical row.

    Args:
        store: Observation store
        aliases: Mapping of old station name -> canonical station name

    Returns:
        Number of rows renamed
    """
    renamed = 0
    for old_name, new_name in aliases.items():
        if old_name == new_name:
            continue
        store.conn.execute(
            """
            DELETE FROM observations
            WHERE station = ?
              AND date IN (SELECT date FROM observations WHERE station = ?)
            """,
            [old_name, new_name],
        )
        count = store.conn.execute(
            "SELECT COUNT(*) FROM observations WHERE station = ?", [old_name]
        ).fetchone()[0]
        store.conn.execute(
            "UPDATE observations SET station = ? WHERE station = ?", [new_name, old_name]
        )
        if count:
            logger.info(f"Renamed {count} rows: {old_name!r} -> {new_name!r}")
        renamed += count
    return renamed


def refresh_current_water_year(store: ObservationStore, today: date) -> None:
    """Recompute is_current_wy so last season's rows drop out on October 1."""
    store.conn.execute(
        "UPDATE observations SET is_current_wy = (water_year = ?)",
        [water_year(today)],
    )


def counts_by_source(store: ObservationStore) -> pd.DataFrame:
    """Record counts per source, largest first."""
    return store.conn.execute(
        """
        SELECT source, COUNT(*) AS records
        FROM observations
        GROUP BY source
        ORDER BY records DESC
        """
    ).df()


def counts_by_station(store: ObservationStore) -> pd.DataFrame:
    """Record counts per station, largest first."""
    return store.conn.execute(
        """
        SELECT station, state, source, COUNT(*) AS records
        FROM observations
        GROUP BY station, state, source
        ORDER BY records DESC
        """
    ).df()


def current_water_year_summary(store: ObservationStore) -> pd.DataFrame:
    """Max/average depth and days recorded per station this water year."""
    return store.conn.execute(
        """
        SELECT station,
            MAX(snow_depth_in) AS max_depth,
            AVG(snow_depth_in) AS avg_depth,
            COUNT(*) AS days_recorded
        FROM observations
        WHERE is_current_wy = TRUE
        GROUP BY station
        ORDER BY max_depth DESC
        """
    ).df()
