"""Session persistence and CSV export."""

from fepcal.io.export import band_to_csv, points_to_csv
from fepcal.io.session import SESSION_SCHEMA, Session

__all__ = [
    "SESSION_SCHEMA",
    "Session",
    "band_to_csv",
    "points_to_csv",
]
