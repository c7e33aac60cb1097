"""Water year calendar helpers.

The water year runs October 1 through September 30 and is labeled by the
calendar year in which it ends (WY2024 = Oct 1, 2023 to Sep 30, 2024).
"""

from datetime import date

WATER_YEAR_START_MONTH = 10

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def water_year(d: date) -> int:
    """Return the water year containing ``d``."""
    if d.month >= WATER_YEAR_START_MONTH:
        return d.year + 1
    return d.year


def water_year_start(wy: int) -> date:
    """Return October 1 that opens water year ``wy``."""
    return date(wy - 1, WATER_YEAR_START_MONTH, 1)


def day_of_water_year(d: date) -> int:
    """Return the 1-based day offset of ``d`` from October 1 of its water year."""
    return (d - water_year_start(water_year(d))).days + 1


def month_name(d: date) -> str:
    """Three-letter month abbreviation used in the observations table."""
    return MONTH_ABBREVIATIONS[d.month - 1]
