"""Monitoring module - collection from the container runtime.

Provides:
- RuntimeClient: runtime interface (DockerRuntimeClient for Docker)
- rates: stats parsing and rate derivation
- NetworkInspector: traffic classification by destination
- Monitor: the fixed-interval collection loop
"""

from __future__ import annotations

from mdok.monitoring.base import ContainerNotFoundError, RuntimeClient, RuntimeClientError
from mdok.monitoring.docker_client import DockerRuntimeClient
from mdok.monitoring.monitor import Monitor
from mdok.monitoring.network import NetworkInspector, NetworkStats, TrafficClass
from mdok.monitoring.rates import RawSnapshot, build_sample, parse_stats

__all__ = [
    "build_sample",
    "ContainerNotFoundError",
    "DockerRuntimeClient",
    "Monitor",
    "NetworkInspector",
    "NetworkStats",
    "parse_stats",
    "RawSnapshot",
    "RuntimeClient",
    "RuntimeClientError",
    "TrafficClass",
]
