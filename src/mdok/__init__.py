"""mdok - Docker container metrics monitor."""

from __future__ import annotations

from mdok.core.schemas import (
    ContainerSeries,
    ContainerSummary,
    MetricSummary,
    MonitorConfig,
    Sample,
)

__version__ = "0.1.0"

__all__ = [
    "ContainerSeries",
    "ContainerSummary",
    "MetricSummary",
    "MonitorConfig",
    "Sample",
    "__version__",
]
