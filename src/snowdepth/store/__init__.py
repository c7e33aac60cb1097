"""DuckDB storage for normalized snow-depth observations."""

from .database import ObservationStore

__all__ = ["ObservationStore"]
