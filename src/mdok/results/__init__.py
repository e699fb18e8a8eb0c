"""Results module - storage and export of monitoring series."""

from __future__ import annotations

from mdok.results.export import (
    ExportFormat,
    export_csv,
    export_json,
    export_markdown,
    render,
    select_series,
)
from mdok.results.storage import SeriesStorage, sanitize_filename

__all__ = [
    "ExportFormat",
    "export_csv",
    "export_json",
    "export_markdown",
    "render",
    "sanitize_filename",
    "select_series",
    "SeriesStorage",
]
