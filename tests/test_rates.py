"""Tests for stats parsing and rate calculation."""

from datetime import datetime, timedelta

import pytest

from mdok.core.schemas import CpuBaseline
from mdok.monitoring.rates import (
    RawSnapshot,
    build_sample,
    calculate_cpu_percent,
    compute_rate,
    online_cpu_count,
    parse_stats,
)

T0 = datetime(2024, 1, 1, 12, 0, 0)


def create_mock_stats(
    memory_usage: int = 100 * 1024 * 1024,
    memory_limit: int = 1024 * 1024 * 1024,
    rx: int = 1000,
    tx: int = 2000,
    blkio_read: int = 1024 * 1024,
    blkio_write: int = 512 * 1024,
) -> dict:
    """Create a mock Docker stats response."""
    return {
        "memory_stats": {
            "usage": memory_usage,
            "limit": memory_limit,
            "stats": {"cache": 4096},
        },
        "cpu_stats": {
            "cpu_usage": {"total_usage": 1_000_000_000, "percpu_usage": [1, 2]},
            "system_cpu_usage": 10_000_000_000,
        },
        "precpu_stats": {
            "cpu_usage": {"total_usage": 900_000_000},
            "system_cpu_usage": 9_000_000_000,
        },
        "networks": {
            "eth0": {"rx_bytes": rx, "tx_bytes": tx},
            "eth1": {"rx_bytes": 10, "tx_bytes": 20},
        },
        "blkio_stats": {
            "io_service_bytes_recursive": [
                {"major": 8, "minor": 0, "op": "Read", "value": blkio_read},
                {"major": 8, "minor": 0, "op": "Write", "value": blkio_write},
                {"major": 8, "minor": 0, "op": "Total", "value": blkio_read + blkio_write},
            ],
        },
        "pids_stats": {"current": 5},
    }


class TestParseStats:
    """Tests for parse_stats."""

    def test_parse_counters(self):
        """Counters are extracted and summed across interfaces."""
        raw = parse_stats(create_mock_stats(), T0)

        assert raw.timestamp == T0
        assert raw.net_rx == 1010
        assert raw.net_tx == 2020
        assert raw.block_read == 1024 * 1024
        assert raw.block_write == 512 * 1024
        assert raw.memory_usage == 100 * 1024 * 1024
        assert raw.memory_cache == 4096
        assert raw.pids == 5
        assert raw.online_cpus == 2

    def test_blkio_op_is_case_insensitive(self):
        """cgroup v2 reports lowercase op names."""
        stats = create_mock_stats()
        stats["blkio_stats"]["io_service_bytes_recursive"] = [
            {"op": "read", "value": 10},
            {"op": "write", "value": 20},
            {"op": "read", "value": 5},
        ]
        raw = parse_stats(stats, T0)

        assert raw.block_read == 15
        assert raw.block_write == 20

    def test_cgroup_v2_cache_falls_back_to_file(self):
        """Memory cache uses 'file' when 'cache' is absent."""
        stats = create_mock_stats()
        stats["memory_stats"]["stats"] = {"file": 8192}

        assert parse_stats(stats, T0).memory_cache == 8192

    def test_empty_document(self):
        """Missing sections are treated as zero."""
        raw = parse_stats({}, T0)

        assert raw.cpu_total == 0
        assert raw.memory_usage == 0
        assert raw.net_rx == 0
        assert raw.online_cpus == 1

    def test_online_cpus_preferred(self):
        """online_cpus wins over the per-CPU list length."""
        assert online_cpu_count({"online_cpus": 4, "cpu_usage": {"percpu_usage": [1]}}) == 4
        assert online_cpu_count({"cpu_usage": {"percpu_usage": [1, 2, 3]}}) == 3
        assert online_cpu_count({}) == 1


class TestCpuPercent:
    """Tests for calculate_cpu_percent."""

    def test_formula(self):
        """cpu/system * cpus * 100."""
        assert calculate_cpu_percent(100, 1000, 2) == pytest.approx(20.0)

    def test_non_positive_deltas(self):
        """No baseline or idle system gives 0."""
        assert calculate_cpu_percent(0, 1000, 2) == 0.0
        assert calculate_cpu_percent(100, 0, 2) == 0.0
        assert calculate_cpu_percent(-5, 1000, 2) == 0.0


class TestComputeRate:
    """Tests for compute_rate."""

    def test_rate(self):
        assert compute_rate(1500, 1000, 5.0) == pytest.approx(100.0)

    def test_zero_elapsed(self):
        """Identical timestamps never divide by zero."""
        assert compute_rate(1500, 1000, 0.0) == 0.0

    def test_counter_reset_gives_negative_rate(self):
        """A reset between readings is reported as a negative rate, not clamped."""
        assert compute_rate(100, 5000, 5.0) < 0


class TestBuildSample:
    """Tests for build_sample."""

    def test_first_sample_has_zero_rates(self):
        """Without a previous snapshot all rates are zero."""
        raw = parse_stats(create_mock_stats(), T0)
        sample = build_sample(raw)

        assert sample.net_rx_rate == 0.0
        assert sample.net_tx_rate == 0.0
        assert sample.block_read_rate == 0.0
        assert sample.block_write_rate == 0.0
        assert sample.net_rx_bytes == 1010

    def test_runtime_baseline_uses_precpu(self):
        """CPU is measured against the runtime-embedded previous reading."""
        raw = parse_stats(create_mock_stats(), T0)
        sample = build_sample(raw, cpu_baseline=CpuBaseline.RUNTIME)

        # (1e8 / 1e9) * 2 cpus * 100
        assert sample.cpu_percent == pytest.approx(20.0)

    def test_local_baseline_first_sample_cpu_zero(self):
        """LOCAL baseline has no CPU reading on the first sample."""
        raw = parse_stats(create_mock_stats(), T0)
        sample = build_sample(raw, cpu_baseline=CpuBaseline.LOCAL)

        assert sample.cpu_percent == 0.0

    def test_local_baseline_uses_previous_snapshot(self):
        """LOCAL baseline measures CPU against the retained snapshot."""
        previous = RawSnapshot(timestamp=T0, cpu_total=500, system_total=10_000, online_cpus=4)
        current = RawSnapshot(
            timestamp=T0 + timedelta(seconds=5),
            cpu_total=1_500,
            system_total=20_000,
            online_cpus=4,
        )
        sample = build_sample(current, previous, cpu_baseline=CpuBaseline.LOCAL)

        assert sample.cpu_percent == pytest.approx(40.0)

    def test_rates_from_previous_snapshot(self):
        """Rates divide the counter delta by the elapsed time."""
        previous = parse_stats(create_mock_stats(rx=1000, tx=0, blkio_read=0), T0)
        current = parse_stats(
            create_mock_stats(rx=6000, tx=10_000, blkio_read=50_000), T0 + timedelta(seconds=5)
        )
        sample = build_sample(current, previous)

        assert sample.net_rx_rate == pytest.approx(1000.0)
        assert sample.net_tx_rate == pytest.approx(2000.0)
        assert sample.block_read_rate == pytest.approx(10_000.0)

    def test_counter_reset_flagged_as_negative_rate(self):
        """A restarted container yields one negative rate sample."""
        previous = parse_stats(create_mock_stats(rx=1_000_000), T0)
        current = parse_stats(create_mock_stats(rx=100), T0 + timedelta(seconds=5))
        sample = build_sample(current, previous)

        assert sample.net_rx_rate < 0

    def test_memory_percent(self):
        """Memory percent is relative to the reported limit."""
        raw = parse_stats(create_mock_stats(memory_usage=256, memory_limit=1024), T0)
        assert build_sample(raw).memory_percent == pytest.approx(25.0)

    def test_memory_percent_unset_without_limit(self):
        """No limit reported means no memory percent."""
        raw = parse_stats(create_mock_stats(memory_limit=0), T0)
        assert build_sample(raw).memory_percent is None

    def test_session_id_stamped(self):
        raw = parse_stats(create_mock_stats(), T0)
        assert build_sample(raw, session_id="1704110400").session_id == "1704110400"
