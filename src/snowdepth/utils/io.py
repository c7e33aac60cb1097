"""I/O utilities for data paths."""

from pathlib import Path

# Project root is 4 levels up from this file
_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

DEFAULT_DB_PATH = _PROJECT_ROOT / "data" / "cache" / "snowdepth.duckdb"
DEFAULT_STATIONS_PATH = _PROJECT_ROOT / "data" / "config" / "stations.csv"


def read_text_lines(text: str, comment: str | None = None) -> list[str]:
    """Split a response body into non-blank lines.

    Args:
        text: Raw response text
        comment: Optional comment marker; lines starting with it are dropped

    Returns:
        List of lines with trailing whitespace removed
    """
    lines = []
    for line in text.splitlines():
        line = line.rstrip()
        if not line.strip():
            continue
        if comment is not None and line.lstrip().startswith(comment):
            continue
        lines.append(line)
    return lines
