"""Shared utilities for snowdepth adapters.

Adapter base classes live in ``snowdepth.utils.base``; they are not
re-exported here because ``snowdepth.models`` imports the calendar helpers
below.
"""

from .water_year import day_of_water_year, month_name, water_year, water_year_start

__all__ = [
    "water_year",
    "water_year_start",
    "day_of_water_year",
    "month_name",
]
