#!/usr/bin/env python3
"""Daily ingestion script for the scheduled workflow.

Runs every configured source once and exits non-zero if any source failed,
so the scheduler surfaces partial failures.

Usage:
    python scripts/daily_update.py
"""

import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from snowdepth.orchestrator import run_daily_update

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main():
    results = run_daily_update()

    failed = [r for r in results if not r.success]
    if failed:
        logger.error(f"{len(failed)} of {len(results)} sources failed: "
                     f"{', '.join(r.source.value for r in failed)}")
        sys.exit(1)

    logger.info("Done!")


if __name__ == "__main__":
    main()
