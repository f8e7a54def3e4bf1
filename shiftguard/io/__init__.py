"""I/O utilities for CSV import."""

from .import_csv import import_memberships_csv, import_shifts_csv, import_time_entries_csv

__all__ = [
    "import_memberships_csv",
    "import_shifts_csv",
    "import_time_entries_csv",
]
