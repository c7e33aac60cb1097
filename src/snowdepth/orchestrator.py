"""Ingestion orchestrator and CLI.

Runs each source in turn: registry lookup -> adapter fetch -> store write.
Sources run sequentially with a pause between them because upstream rate
limits are per IP and shared by the whole process. A failure in one source
is logged and recorded; the remaining sources still run.

Run once a day from cron or a scheduled workflow:

    # 06:15 local time
    15 6 * * * python -m snowdepth.orchestrator

Usage:
    python -m snowdepth.orchestrator                      # Daily update, all sources
    python -m snowdepth.orchestrator --backfill SNOTEL    # Backfill one source
    python -m snowdepth.orchestrator --recompute-rank     # Rebuild month_rank
    python -m snowdepth.orchestrator --status             # Show table status
"""

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Optional

from snowdepth.config import Settings
from snowdepth.models import DateRange, SourceType, WriteMode
from snowdepth.pipelines import ADAPTERS
from snowdepth.registry import StationRegistry
from snowdepth.store import ObservationStore
from snowdepth.store import maintenance
from snowdepth.utils.base import SourceAdapter

logger = logging.getLogger(__name__)

# Sources that only ever report the current day
CURRENT_DAY_ONLY = {SourceType.FEDERAL_BULLETIN, SourceType.RESORT_FEED}


class RunMode(str, Enum):
    """Which lookback window a source run uses."""

    DAILY = "daily"
    BACKFILL = "backfill"


@dataclass
class SourceResult:
    """Outcome of running one source."""

    source: SourceType
    success: bool
    stations: int = 0
    records: int = 0
    inserted: int = 0
    updated: int = 0
    duration_ms: int = 0
    error: Optional[str] = None

    def __str__(self) -> str:
        if not self.success:
            return f"{self.source.value}: FAILED after {self.duration_ms}ms - {self.error}"
        return (
            f"{self.source.value}: {self.records} records from {self.stations} stations "
            f"({self.inserted} new, {self.updated} updated, {self.duration_ms}ms)"
        )


def date_range_for(mode: RunMode, settings: Settings, today: date, years: Optional[int] = None) -> DateRange:
    """Lookback window for a run mode."""
    if mode == RunMode.BACKFILL:
        return DateRange.water_years_back(years or settings.backfill_years, today)
    return DateRange.last_days(settings.daily_lookback_days, today)


def run_source(
    source: SourceType,
    settings: Settings,
    store: ObservationStore,
    registry: StationRegistry,
    mode: RunMode = RunMode.DAILY,
    write_mode: WriteMode = WriteMode.UPSERT,
    today: Optional[date] = None,
    adapter: Optional[SourceAdapter] = None,
    years: Optional[int] = None,
) -> SourceResult:
    """Run one source end to end, never raising.

    Args:
        source: Source to run
        settings: Runtime settings
        store: Destination observation store
        registry: Station registry
        mode: DAILY (short lookback) or BACKFILL (whole water years)
        write_mode: UPSERT or APPEND
        today: Reference date for the lookback window. Defaults to today
        adapter: Adapter instance to use instead of the default for ``source``
        years: Backfill depth in water years. Defaults to settings.backfill_years

    Returns:
        SourceResult describing success or failure
    """
    today = today or date.today()
    start_time = time.time()

    try:
        stations = registry.list_active_stations(source)
        if not stations:
            logger.info(f"{source.value}: no active stations configured, nothing to do")
            result = SourceResult(source=source, success=True)
        else:
            adapter = adapter or ADAPTERS[source](settings)
            if mode == RunMode.BACKFILL and source in CURRENT_DAY_ONLY:
                logger.warning(f"{source.value} has no history; backfill fetches today only")

            date_range = date_range_for(mode, settings, today, years)
            logger.info(f"{source.value}: fetching {len(stations)} stations ({date_range})")
            records = adapter.fetch_all(stations, date_range)

            validation = adapter.validate(records)
            if not validation.valid:
                logger.warning(f"{source.value}: {validation} {validation.issues}")

            written = store.write(records, write_mode)
            result = SourceResult(
                source=source,
                success=True,
                stations=len(stations),
                records=len(records),
                inserted=written.inserted,
                updated=written.updated,
            )
    except Exception as e:
        logger.error(f"{source.value}: failed - {e}")
        result = SourceResult(source=source, success=False, error=str(e))

    result.duration_ms = int((time.time() - start_time) * 1000)
    store.log_fetch(
        source=source.value,
        status="success" if result.success else "error",
        records_written=result.inserted + result.updated,
        duration_ms=result.duration_ms,
        error_message=result.error,
    )
    logger.info(str(result))
    return result


def run_daily_update(
    settings: Optional[Settings] = None,
    store: Optional[ObservationStore] = None,
    registry: Optional[StationRegistry] = None,
    adapters: Optional[dict[SourceType, SourceAdapter]] = None,
    sources: Optional[list[SourceType]] = None,
    today: Optional[date] = None,
) -> list[SourceResult]:
    """Combined daily entry point: upsert recent data for every daily source.

    Args:
        settings: Runtime settings. Defaults to Settings() from the environment
        store: Observation store. Opened from settings.db_path if not given
        registry: Station registry. Built from settings if not given
        adapters: Per-source adapter overrides
        sources: Sources to run, in order. Defaults to settings.daily_sources
        today: Reference date. Defaults to today

    Returns:
        One SourceResult per source, in run order
    """
    settings = settings or Settings()
    registry = registry or StationRegistry(settings)
    if sources is None:
        sources = settings.daily_sources
    adapters = adapters or {}
    today = today or date.today()

    owns_store = store is None
    store = store or ObservationStore(settings.db_path)

    try:
        logger.info("=" * 60)
        logger.info(f"Starting daily update for {today} ({len(sources)} sources)")
        logger.info(f"Database: {store.db_path}")
        logger.info("=" * 60)

        results = []
        for i, source in enumerate(sources):
            if i > 0 and settings.source_delay_seconds > 0:
                time.sleep(settings.source_delay_seconds)
            results.append(
                run_source(
                    source,
                    settings,
                    store,
                    registry,
                    mode=RunMode.DAILY,
                    write_mode=WriteMode.UPSERT,
                    today=today,
                    adapter=adapters.get(source),
                )
            )

        maintenance.refresh_current_water_year(store, today)

        failed = [r for r in results if not r.success]
        logger.info("=" * 60)
        logger.info(f"Daily update complete: {len(results) - len(failed)}/{len(results)} sources succeeded")
        for result in results:
            logger.info(f"  {result}")
        logger.info("=" * 60)

        return results

    finally:
        if owns_store:
            store.close()


def run_backfill(
    source: SourceType,
    settings: Optional[Settings] = None,
    years: Optional[int] = None,
    write_mode: WriteMode = WriteMode.APPEND,
    today: Optional[date] = None,
) -> SourceResult:
    """Load whole water years of history for one source.

    Bulk append is the default since backfills target an empty table; pass
    WriteMode.UPSERT to backfill over existing rows.
    """
    settings = settings or Settings()
    store = ObservationStore(settings.db_path)
    try:
        return run_source(
            source,
            settings,
            store,
            StationRegistry(settings),
            mode=RunMode.BACKFILL,
            write_mode=write_mode,
            today=today,
            years=years,
        )
    finally:
        store.close()


def print_status(store: ObservationStore) -> None:
    """Print table status in human-readable format."""
    stats = store.get_stats()
    print()
    print("=" * 60)
    print("Snow Depth Observations Status")
    print("=" * 60)
    print(f"Database: {stats['db_path']}")
    print(f"Total observations: {stats['observation_count']}")
    print(f"Latest observation date: {stats['latest_date']}")
    print(f"Last updated: {stats['latest_update']}")
    if stats["last_fetch"]:
        source, run_at, status = stats["last_fetch"]
        print(f"Last fetch: {source} at {run_at} ({status})")

    print()
    print("Records by source:")
    print("-" * 60)
    for row in maintenance.counts_by_source(store).itertuples(index=False):
        print(f"  {row.source:<10} {row.records}")

    print()
    print("Current water year:")
    print("-" * 60)
    for row in maintenance.current_water_year_summary(store).itertuples(index=False):
        print(
            f"  {row.station:<30} max {row.max_depth:>6.1f}in  "
            f"avg {row.avg_depth:>6.1f}in  ({row.days_recorded} days)"
        )
    print("=" * 60)


def _source_arg(value: str) -> SourceType:
    try:
        return SourceType.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Ingest daily snow depth observations into DuckDB",
        epilog="""
Sources: SNOTEL, NOAA, NWS, CDEC, RESORT

Examples:
  python -m snowdepth.orchestrator                       # Daily update
  python -m snowdepth.orchestrator --backfill NOAA --years 3
  python -m snowdepth.orchestrator --recompute-rank      # Rebuild month_rank
  python -m snowdepth.orchestrator --status
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--daily",
        action="store_true",
        help="Run the daily update for every daily source (default)",
    )
    parser.add_argument(
        "--backfill",
        type=_source_arg,
        metavar="SOURCE",
        help="Backfill whole water years for one source",
    )
    parser.add_argument(
        "--years",
        type=int,
        default=None,
        help="Water years to backfill (default: SNOWDEPTH_BACKFILL_YEARS)",
    )
    parser.add_argument(
        "--upsert",
        action="store_true",
        help="Backfill with upserts instead of bulk append",
    )
    parser.add_argument(
        "--recompute-rank",
        action="store_true",
        help="Recompute month_rank for all rows",
    )
    parser.add_argument(
        "--dedupe",
        action="store_true",
        help="Remove duplicate observations, keeping the newest",
    )
    parser.add_argument(
        "--merge-aliases",
        action="store_true",
        help="Rename stations per SNOWDEPTH_STATION_ALIASES",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show current table status",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Database path (default: SNOWDEPTH_DB_PATH)",
    )
    parser.add_argument(
        "--stations",
        type=Path,
        default=None,
        help="Station registry CSV (default: SNOWDEPTH_STATIONS_PATH)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    args = parser.parse_args(argv)

    # Configure logging
    if args.quiet:
        level = logging.ERROR
    elif args.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    overrides = {}
    if args.db:
        overrides["db_path"] = args.db
    if args.stations:
        overrides["stations_path"] = args.stations
    settings = Settings().model_copy(update=overrides)

    try:
        if args.status or args.recompute_rank or args.dedupe or args.merge_aliases:
            store = ObservationStore(settings.db_path)
            try:
                if args.merge_aliases:
                    maintenance.merge_station_aliases(store, settings.station_aliases)
                if args.dedupe:
                    maintenance.remove_duplicates(store)
                if args.recompute_rank:
                    maintenance.recompute_month_rank(store)
                if args.status:
                    print_status(store)
            finally:
                store.close()
            return 0

        if args.backfill:
            write_mode = WriteMode.UPSERT if args.upsert else WriteMode.APPEND
            result = run_backfill(args.backfill, settings, years=args.years, write_mode=write_mode)
            return 0 if result.success else 1

        results = run_daily_update(settings)
        return 0 if all(r.success for r in results) else 1

    except Exception as e:
        logger.error(f"Run failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
