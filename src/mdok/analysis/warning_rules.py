"""Rule-based warnings from aggregated statistics and declared limits."""

from __future__ import annotations

from mdok.core.constants import BYTES_PER_GIB
from mdok.core.schemas import ContainerLimits, ContainerSummary

OOM_RISK_FRACTION = 0.95
MEMORY_HIGH_FRACTION = 0.80
UNCONSTRAINED_MEMORY_PERCENT = 80.0
CPU_HIGH_PERCENT = 90.0
CPU_SATURATED_PERCENT = 100.0
CPU_QUOTA_FRACTION = 0.90
HIGH_EGRESS_BYTES = 10 * BYTES_PER_GIB
PIDS_FRACTION = 0.90


def detect_warnings(summary: ContainerSummary | None, limits: ContainerLimits) -> list[str]:
    """Identify potential issues in a container's summary.

    Each rule is evaluated independently, except that the "P95 above 80% of
    limit" memory warning only fires when the OOM-risk warning did not.

    Args:
        summary: Aggregated statistics (None yields no warnings)
        limits: Resource limits captured for the container

    Returns:
        Warning messages in rule order
    """
    warnings: list[str] = []
    if summary is None:
        return warnings

    if limits.memory_limit > 0:
        mem_limit = float(limits.memory_limit)
        if summary.memory_usage.max >= mem_limit * OOM_RISK_FRACTION:
            warnings.append("Memory usage reached 95%+ of limit - OOM risk")
        elif summary.memory_usage.p95 >= mem_limit * MEMORY_HIGH_FRACTION:
            warnings.append("Memory usage P95 above 80% of limit")
    elif summary.memory_percent.p95 > UNCONSTRAINED_MEMORY_PERCENT:
        warnings.append("High memory usage with no memory limit set")

    if summary.cpu_percent.p95 > CPU_HIGH_PERCENT:
        warnings.append("CPU usage P95 above 90%")
    if summary.cpu_percent.max >= CPU_SATURATED_PERCENT:
        warnings.append("CPU usage reached 100% - possible throttling")

    if limits.cpu_quota > 0 and limits.cpu_period > 0:
        cpu_limit = limits.cpu_quota / limits.cpu_period * 100
        if summary.cpu_percent.p95 >= cpu_limit * CPU_QUOTA_FRACTION:
            warnings.append(f"CPU usage near quota limit ({cpu_limit:.1f}%)")

    if summary.net_tx_total > HIGH_EGRESS_BYTES:
        warnings.append(f"High egress traffic: {summary.net_tx_total / BYTES_PER_GIB:.2f} GB")

    if limits.pids_limit > 0 and summary.pids_count.max >= limits.pids_limit * PIDS_FRACTION:
        warnings.append("PID count near limit")

    return warnings
