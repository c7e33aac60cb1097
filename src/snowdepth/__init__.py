"""snowdepth: daily snow-depth ingestion from multiple public sources.

Fetches snow-depth observations from SNOTEL, NOAA CDO, NWS text bulletins,
CDEC and a ski-resort conditions feed, normalizes them to a single
observation schema, and loads them into a DuckDB table.
"""

__version__ = "0.1.0"
