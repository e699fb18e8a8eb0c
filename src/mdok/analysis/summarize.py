"""Fill a series' derived fields: summary, warnings, duration, cost, recommendation."""

from __future__ import annotations

from datetime import datetime

from mdok.analysis.advisor import estimate_network_cost, recommend_instance
from mdok.analysis.stats import calculate_summary
from mdok.analysis.warning_rules import detect_warnings
from mdok.core.schemas import Architecture, ContainerSeries
from mdok.utils.units import format_duration


def summarize_series(
    series: ContainerSeries,
    region: str | None = None,
    end_time: datetime | None = None,
) -> ContainerSeries:
    """Return a copy of ``series`` with all derived fields recomputed.

    Args:
        series: Series (or session/time-window slice of one)
        region: Pricing region for the egress estimate
        end_time: End of the range; defaults to ``series.end_time``, then the
            last sample's timestamp

    Returns:
        New ContainerSeries. With no samples the derived fields are None.
    """
    result = series.model_copy(deep=True)
    summary = calculate_summary(result.samples)
    if summary is None:
        result.summary = None
        result.network_cost = None
        result.recommendation = None
        return result

    end = end_time or result.end_time or result.samples[-1].timestamp
    summary.duration_seconds = max((end - result.start_time).total_seconds(), 0.0)
    summary.duration = format_duration(summary.duration_seconds)
    summary.warnings = detect_warnings(summary, result.limits)

    result.end_time = end
    result.summary = summary
    result.network_cost = estimate_network_cost(summary.net_tx_total, region)
    result.recommendation = recommend_instance(
        summary, Architecture.from_host(result.host.architecture)
    )
    return result


def ensure_summary(series: ContainerSeries, region: str | None = None) -> ContainerSeries:
    """Compute derived fields only if any is missing or stale.

    A cached summary is stale when it does not count every sample (samples
    were appended after it was computed).
    """
    if (
        series.summary is not None
        and series.summary.sample_count == len(series.samples)
        and series.network_cost is not None
        and series.recommendation is not None
    ):
        return series
    return summarize_series(series, region)
