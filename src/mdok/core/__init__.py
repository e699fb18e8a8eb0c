"""Core module - configuration and schemas."""

from __future__ import annotations

from mdok.core.config import Workspace, load_config, save_config
from mdok.core.constants import BYTES_PER_GIB, DEFAULT_PROXY_PATTERNS, PROXY_LABEL_KEY
from mdok.core.schemas import (
    Architecture,
    BytesSource,
    ContainerInfo,
    ContainerLimits,
    ContainerSeries,
    ContainerSummary,
    CpuBaseline,
    DualRecommendation,
    HostInfo,
    InstanceRecommendation,
    MetricKind,
    MetricSummary,
    MonitorConfig,
    NetworkBreakdown,
    NetworkCostEstimate,
    NetworkEndpoint,
    Sample,
    Session,
    SessionInfo,
)

__all__ = [
    "BYTES_PER_GIB",
    "DEFAULT_PROXY_PATTERNS",
    "PROXY_LABEL_KEY",
    "Architecture",
    "BytesSource",
    "ContainerInfo",
    "ContainerLimits",
    "ContainerSeries",
    "ContainerSummary",
    "CpuBaseline",
    "DualRecommendation",
    "HostInfo",
    "InstanceRecommendation",
    "load_config",
    "MetricKind",
    "MetricSummary",
    "MonitorConfig",
    "NetworkBreakdown",
    "NetworkCostEstimate",
    "NetworkEndpoint",
    "Sample",
    "save_config",
    "Session",
    "SessionInfo",
    "Workspace",
]
