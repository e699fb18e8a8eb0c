"""Statistics engine: aggregate a session's samples into a ContainerSummary.

Every function here is pure. Identical inputs give identical outputs: values
are accumulated in sample order and metrics are visited in MetricKind order.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence

from mdok.core.schemas import (
    ContainerSummary,
    MetricKind,
    MetricSummary,
    NetworkBreakdown,
    Sample,
)

# Accessor per metric kind. Unset memory percent (no limit reported) counts as 0.
METRIC_ACCESSORS: dict[MetricKind, Callable[[Sample], float]] = {
    MetricKind.CPU_PERCENT: lambda s: s.cpu_percent,
    MetricKind.MEMORY_USAGE: lambda s: float(s.memory_usage),
    MetricKind.MEMORY_PERCENT: lambda s: s.memory_percent or 0.0,
    MetricKind.NET_RX_RATE: lambda s: s.net_rx_rate,
    MetricKind.NET_TX_RATE: lambda s: s.net_tx_rate,
    MetricKind.BLOCK_READ_RATE: lambda s: s.block_read_rate,
    MetricKind.BLOCK_WRITE_RATE: lambda s: s.block_write_rate,
    MetricKind.PIDS_COUNT: lambda s: float(s.pids_count),
}

# Rate metrics backed by a cumulative counter: kind -> counter accessor.
CUMULATIVE_COUNTERS: dict[MetricKind, Callable[[Sample], int]] = {
    MetricKind.NET_RX_RATE: lambda s: s.net_rx_bytes,
    MetricKind.NET_TX_RATE: lambda s: s.net_tx_bytes,
    MetricKind.BLOCK_READ_RATE: lambda s: s.block_read,
    MetricKind.BLOCK_WRITE_RATE: lambda s: s.block_write,
}


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolation percentile of an ascending sequence.

    rank = p * (n - 1); the result interpolates between the values at
    floor(rank) and ceil(rank).

    Args:
        sorted_values: Values sorted ascending
        p: Fraction in [0, 1] (0.95 for P95)

    Returns:
        The percentile, or 0.0 for an empty sequence
    """
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])

    rank = p * (len(sorted_values) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return float(sorted_values[lower])

    weight = rank - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * weight


def calculate_stats(values: Sequence[float]) -> MetricSummary:
    """Min, max, avg, P95 and P99 of a list of values (zeros when empty)."""
    if not values:
        return MetricSummary()

    ordered = sorted(values)
    return MetricSummary(
        min=ordered[0],
        max=ordered[-1],
        avg=sum(values) / len(values),
        p95=percentile(ordered, 0.95),
        p99=percentile(ordered, 0.99),
    )


def cumulative_total(first: int, last: int) -> int:
    """Counter delta across a range, treating a decrease as a reset.

    When the counter went backwards the accumulation restarted from zero, so
    the last reading is the best available total.
    """
    if last >= first:
        return last - first
    return last


def network_breakdown(samples: Sequence[Sample]) -> NetworkBreakdown | None:
    """Traffic share per destination class.

    Byte-level classification is used exclusively when any sample carries it;
    otherwise connection counts are used. Returns None when neither exists.
    """
    bytes_inter = bytes_internal = bytes_internet = 0
    conn_inter = conn_internal = conn_internet = 0

    for s in samples:
        if s.net_bytes_inter_container + s.net_bytes_internal + s.net_bytes_internet > 0:
            bytes_inter += s.net_bytes_inter_container
            bytes_internal += s.net_bytes_internal
            bytes_internet += s.net_bytes_internet
        if s.net_conn_inter_container + s.net_conn_internal + s.net_conn_internet > 0:
            conn_inter += s.net_conn_inter_container
            conn_internal += s.net_conn_internal
            conn_internet += s.net_conn_internet

    total_bytes = bytes_inter + bytes_internal + bytes_internet
    if total_bytes > 0:
        return _breakdown(bytes_inter, bytes_internal, bytes_internet, "bytes")

    if conn_inter + conn_internal + conn_internet > 0:
        return _breakdown(conn_inter, conn_internal, conn_internet, "connections")

    return None


def _breakdown(inter: int, internal: int, internet: int, source: str) -> NetworkBreakdown:
    total = float(inter + internal + internet)
    return NetworkBreakdown(
        inter_container_pct=inter / total * 100,
        internal_pct=internal / total * 100,
        internet_pct=internet / total * 100,
        source=source,
    )


def calculate_summary(samples: Sequence[Sample]) -> ContainerSummary | None:
    """Aggregate samples into a ContainerSummary.

    Args:
        samples: Samples ordered by timestamp

    Returns:
        ContainerSummary, or None when there are no samples ("no data").
        Duration and warnings are left for the caller to fill in.
    """
    if not samples:
        return None

    metrics: dict[str, MetricSummary] = {}
    for kind, accessor in METRIC_ACCESSORS.items():
        metrics[kind.value] = calculate_stats([accessor(s) for s in samples])

    first = samples[0]
    last = samples[-1]
    totals: dict[MetricKind, int] = {}
    for kind, counter in CUMULATIVE_COUNTERS.items():
        totals[kind] = cumulative_total(counter(first), counter(last))
        metrics[kind.value].total = float(totals[kind])

    return ContainerSummary(
        **metrics,
        net_rx_total=totals[MetricKind.NET_RX_RATE],
        net_tx_total=totals[MetricKind.NET_TX_RATE],
        block_read_total=totals[MetricKind.BLOCK_READ_RATE],
        block_write_total=totals[MetricKind.BLOCK_WRITE_RATE],
        sample_count=len(samples),
        network_breakdown=network_breakdown(samples),
    )
