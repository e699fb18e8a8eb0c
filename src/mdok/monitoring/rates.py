"""Rate calculation from Docker stats snapshots.

Docker reports cumulative counters (CPU time, network bytes, block I/O bytes).
This module parses one stats document into a RawSnapshot and turns it into a
Sample using the previous snapshot of the same container as baseline.

Rates are not clamped. A counter reset (container restart) between two
snapshots produces one negative rate; cumulative totals handle resets later
in the statistics engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from mdok.core.schemas import CpuBaseline, Sample


@dataclass
class RawSnapshot:
    """Counters extracted from one stats document."""

    timestamp: datetime
    # CPU (nanoseconds), with the runtime-embedded previous reading
    cpu_total: int = 0
    system_total: int = 0
    precpu_total: int = 0
    presystem_total: int = 0
    online_cpus: int = 1
    # Memory (bytes)
    memory_usage: int = 0
    memory_limit: int = 0
    memory_cache: int = 0
    # Cumulative network / block I/O (bytes)
    net_rx: int = 0
    net_tx: int = 0
    block_read: int = 0
    block_write: int = 0
    pids: int = 0


def online_cpu_count(cpu_stats: dict[str, Any]) -> int:
    """Online CPUs, falling back to the per-CPU counter count, then 1."""
    online = cpu_stats.get("online_cpus") or 0
    if online > 0:
        return int(online)
    percpu = (cpu_stats.get("cpu_usage") or {}).get("percpu_usage") or []
    return len(percpu) or 1


def _parse_blkio(stats: dict[str, Any]) -> tuple[int, int]:
    """Sum read/write bytes across devices from blkio_stats."""
    entries = (stats.get("blkio_stats") or {}).get("io_service_bytes_recursive") or []
    read_bytes = 0
    write_bytes = 0
    for entry in entries:
        op = (entry.get("op") or "").lower()
        value = entry.get("value") or 0
        if op == "read":
            read_bytes += value
        elif op == "write":
            write_bytes += value
    return read_bytes, write_bytes


def _parse_network(stats: dict[str, Any]) -> tuple[int, int]:
    """Sum rx/tx bytes across all interfaces."""
    rx = 0
    tx = 0
    for iface in (stats.get("networks") or {}).values():
        rx += iface.get("rx_bytes") or 0
        tx += iface.get("tx_bytes") or 0
    return rx, tx


def parse_stats(stats: dict[str, Any], timestamp: datetime) -> RawSnapshot:
    """Parse a Docker stats document into a RawSnapshot.

    Args:
        stats: Raw stats dict from ``container.stats(stream=False)``
        timestamp: Local time the snapshot was taken

    Returns:
        RawSnapshot with missing sections treated as zero
    """
    cpu_stats = stats.get("cpu_stats") or {}
    precpu_stats = stats.get("precpu_stats") or {}
    memory_stats = stats.get("memory_stats") or {}
    memory_detail = memory_stats.get("stats") or {}

    net_rx, net_tx = _parse_network(stats)
    block_read, block_write = _parse_blkio(stats)

    return RawSnapshot(
        timestamp=timestamp,
        cpu_total=(cpu_stats.get("cpu_usage") or {}).get("total_usage") or 0,
        system_total=cpu_stats.get("system_cpu_usage") or 0,
        precpu_total=(precpu_stats.get("cpu_usage") or {}).get("total_usage") or 0,
        presystem_total=precpu_stats.get("system_cpu_usage") or 0,
        online_cpus=online_cpu_count(cpu_stats),
        memory_usage=memory_stats.get("usage") or 0,
        memory_limit=memory_stats.get("limit") or 0,
        # cgroup v1 reports "cache", v2 reports "file"
        memory_cache=memory_detail.get("cache", memory_detail.get("file", 0)) or 0,
        net_rx=net_rx,
        net_tx=net_tx,
        block_read=block_read,
        block_write=block_write,
        pids=(stats.get("pids_stats") or {}).get("current") or 0,
    )


def calculate_cpu_percent(cpu_delta: float, system_delta: float, online_cpus: int) -> float:
    """CPU percent as Docker computes it: (cpu / system) * cpus * 100.

    Returns 0.0 when either delta is non-positive (no baseline or no activity).
    """
    if cpu_delta <= 0 or system_delta <= 0:
        return 0.0
    return (cpu_delta / system_delta) * max(online_cpus, 1) * 100.0


def compute_rate(current: int, previous: int, elapsed_seconds: float) -> float:
    """Per-second rate between two cumulative readings (0.0 if no time elapsed)."""
    if elapsed_seconds <= 0:
        return 0.0
    return (current - previous) / elapsed_seconds


def build_sample(
    current: RawSnapshot,
    previous: RawSnapshot | None = None,
    cpu_baseline: CpuBaseline = CpuBaseline.RUNTIME,
    session_id: str | None = None,
) -> Sample:
    """Turn a snapshot into a Sample using the previous snapshot as baseline.

    Args:
        current: Snapshot taken this tick
        previous: Snapshot taken on the previous tick for the same container
        cpu_baseline: RUNTIME measures CPU against the runtime-embedded precpu
            reading; LOCAL measures it against ``previous``
        session_id: Monitoring run identifier stamped on the sample

    Returns:
        Sample with rates set to zero when there is no previous snapshot
    """
    if cpu_baseline is CpuBaseline.LOCAL:
        if previous is not None:
            cpu_delta = current.cpu_total - previous.cpu_total
            system_delta = current.system_total - previous.system_total
        else:
            cpu_delta = system_delta = 0
    else:
        cpu_delta = current.cpu_total - current.precpu_total
        system_delta = current.system_total - current.presystem_total

    memory_percent = None
    if current.memory_limit > 0:
        memory_percent = current.memory_usage / current.memory_limit * 100.0

    net_rx_rate = net_tx_rate = 0.0
    block_read_rate = block_write_rate = 0.0
    if previous is not None:
        elapsed = (current.timestamp - previous.timestamp).total_seconds()
        net_rx_rate = compute_rate(current.net_rx, previous.net_rx, elapsed)
        net_tx_rate = compute_rate(current.net_tx, previous.net_tx, elapsed)
        block_read_rate = compute_rate(current.block_read, previous.block_read, elapsed)
        block_write_rate = compute_rate(current.block_write, previous.block_write, elapsed)

    return Sample(
        timestamp=current.timestamp,
        cpu_percent=calculate_cpu_percent(cpu_delta, system_delta, current.online_cpus),
        memory_usage=current.memory_usage,
        memory_percent=memory_percent,
        memory_cache=current.memory_cache,
        net_rx_bytes=current.net_rx,
        net_tx_bytes=current.net_tx,
        net_rx_rate=net_rx_rate,
        net_tx_rate=net_tx_rate,
        block_read=current.block_read,
        block_write=current.block_write,
        block_read_rate=block_read_rate,
        block_write_rate=block_write_rate,
        pids_count=current.pids,
        session_id=session_id,
    )
