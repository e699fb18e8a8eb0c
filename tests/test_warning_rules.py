"""Tests for warning detection."""

from mdok.analysis.warning_rules import detect_warnings
from mdok.core.constants import BYTES_PER_GIB
from mdok.core.schemas import ContainerLimits, ContainerSummary, MetricSummary

MIB = 1024 * 1024


def make_summary(
    cpu_p95: float = 10.0,
    cpu_max: float = 20.0,
    mem_max: float = 0.0,
    mem_p95: float = 0.0,
    mem_pct_p95: float = 0.0,
    net_tx_total: int = 0,
    pids_max: float = 0.0,
) -> ContainerSummary:
    """Create a summary with only the fields the rules look at."""
    return ContainerSummary(
        cpu_percent=MetricSummary(p95=cpu_p95, max=cpu_max),
        memory_usage=MetricSummary(max=mem_max, p95=mem_p95),
        memory_percent=MetricSummary(p95=mem_pct_p95),
        pids_count=MetricSummary(max=pids_max),
        net_tx_total=net_tx_total,
    )


class TestDetectWarnings:
    """Tests for detect_warnings."""

    def test_no_summary(self):
        assert detect_warnings(None, ContainerLimits()) == []

    def test_quiet_container(self):
        assert detect_warnings(make_summary(), ContainerLimits(memory_limit=1024 * MIB)) == []

    def test_oom_risk_suppresses_p95_warning(self):
        """500 MiB max against a 512 MiB limit is an OOM risk, not just "high"."""
        summary = make_summary(mem_max=500 * MIB, mem_p95=450 * MIB)
        warnings = detect_warnings(summary, ContainerLimits(memory_limit=512 * MIB))

        assert "Memory usage reached 95%+ of limit - OOM risk" in warnings
        assert "Memory usage P95 above 80% of limit" not in warnings

    def test_memory_p95_high(self):
        summary = make_summary(mem_max=450 * MIB, mem_p95=420 * MIB)
        warnings = detect_warnings(summary, ContainerLimits(memory_limit=512 * MIB))

        assert warnings == ["Memory usage P95 above 80% of limit"]

    def test_unlimited_memory_high_percent(self):
        summary = make_summary(mem_pct_p95=85.0)
        warnings = detect_warnings(summary, ContainerLimits())

        assert warnings == ["High memory usage with no memory limit set"]

    def test_cpu_rules(self):
        warnings = detect_warnings(make_summary(cpu_p95=95.0, cpu_max=100.0), ContainerLimits())

        assert "CPU usage P95 above 90%" in warnings
        assert "CPU usage reached 100% - possible throttling" in warnings

    def test_cpu_quota(self):
        """50000/100000 quota is a 50% limit; P95 of 46% is within 90% of it."""
        limits = ContainerLimits(cpu_quota=50_000, cpu_period=100_000)
        warnings = detect_warnings(make_summary(cpu_p95=46.0, cpu_max=50.0), limits)

        assert warnings == ["CPU usage near quota limit (50.0%)"]

    def test_high_egress(self):
        warnings = detect_warnings(
            make_summary(net_tx_total=12 * BYTES_PER_GIB), ContainerLimits()
        )
        assert warnings == ["High egress traffic: 12.00 GB"]

    def test_pids_near_limit(self):
        warnings = detect_warnings(make_summary(pids_max=95), ContainerLimits(pids_limit=100))
        assert warnings == ["PID count near limit"]

    def test_idempotent(self):
        """Detecting twice on the same input gives the same list."""
        summary = make_summary(cpu_p95=95.0, cpu_max=100.0, mem_max=510 * MIB)
        limits = ContainerLimits(memory_limit=512 * MIB, pids_limit=10)

        assert detect_warnings(summary, limits) == detect_warnings(summary, limits)
