"""Unit conversion and formatting helpers.

Functions:
    bytes_to_gib: Convert bytes to GiB
    format_bytes: Human-readable binary size ("1.5 MB")
    format_duration: Compact duration string ("1h2m3s")
    parse_duration: Parse "30s", "15m", "1h", "2d" (or "1h30m") into a timedelta
"""

from __future__ import annotations

import re
from datetime import timedelta

from mdok.core.constants import BYTES_PER_GIB

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)([smhd])")


def bytes_to_gib(byte_count: int | float) -> float:
    """Convert bytes to GiB (2^30 bytes)."""
    return byte_count / BYTES_PER_GIB


def format_bytes(byte_count: int | float) -> str:
    """Format a byte count using 1024-based units.

    Args:
        byte_count: Number of bytes (negative values are formatted with a sign)

    Returns:
        String like "512 B", "1.5 KB" or "2.0 GB"
    """
    sign = "-" if byte_count < 0 else ""
    value = abs(int(byte_count))
    if value < 1024:
        return f"{sign}{value} B"

    divisor = 1024
    exponent = 0
    n = value // 1024
    while n >= 1024:
        divisor *= 1024
        exponent += 1
        n //= 1024
    return f"{sign}{value / divisor:.1f} {'KMGTPE'[exponent]}B"


def format_duration(seconds: float) -> str:
    """Format seconds (rounded to whole seconds) as e.g. "1h2m3s", "45s" or "0s"."""
    total = int(round(max(seconds, 0.0)))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "45s", "30m", "1h", "2d" or "1h30m".

    Raises:
        ValueError: If the string is empty or not a valid duration
    """
    text = text.strip().lower()
    if not text:
        raise ValueError("empty duration")

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos != len(text):
        raise ValueError(f"invalid duration: {text!r}")
    return timedelta(seconds=total)
