"""Utils module - Shared utilities."""

from __future__ import annotations

from mdok.utils.logging import get_logger, setup_logging
from mdok.utils.units import bytes_to_gib, format_bytes, format_duration, parse_duration

__all__ = [
    "bytes_to_gib",
    "format_bytes",
    "format_duration",
    "get_logger",
    "parse_duration",
    "setup_logging",
]
