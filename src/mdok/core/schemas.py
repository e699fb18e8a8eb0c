"""Pydantic schemas for mdok.

This module defines the data contracts shared by the collection loop, the
analysis functions and the persistence/export layers: samples, per-container
series, summaries, cost estimates, recommendations and sessions.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from mdok.core.constants import DEFAULT_MAX_WORKERS, DEFAULT_REGION


class Architecture(str, Enum):
    """Hardware architecture families with separate instance catalogs."""

    X86 = "x86"
    ARM = "arm"

    @classmethod
    def from_host(cls, machine: str) -> Architecture:
        """Map a runtime-reported machine string (e.g. 'aarch64') to a family."""
        lowered = machine.lower()
        if lowered.startswith(("aarch64", "arm")):
            return cls.ARM
        return cls.X86


class CpuBaseline(str, Enum):
    """Which previous snapshot CPU percent is measured against."""

    RUNTIME = "runtime"  # Runtime-embedded precpu_stats
    LOCAL = "local"  # Previous snapshot retained by the collection loop


class BytesSource(str, Enum):
    """Provenance of per-class byte counts on a sample."""

    CONNTRACK = "conntrack"  # Measured from kernel connection tracking
    ESTIMATED = "estimated"  # Only connection counts were available


class MetricKind(str, Enum):
    """Scalar metrics aggregated per session.

    Values match the corresponding ContainerSummary field names.
    """

    CPU_PERCENT = "cpu_percent"
    MEMORY_USAGE = "memory_usage"
    MEMORY_PERCENT = "memory_percent"
    NET_RX_RATE = "net_rx_rate"
    NET_TX_RATE = "net_tx_rate"
    BLOCK_READ_RATE = "block_read_rate"
    BLOCK_WRITE_RATE = "block_write_rate"
    PIDS_COUNT = "pids_count"


# =============================================================================
# CONFIGURATION
# =============================================================================


class MonitorConfig(BaseModel):
    """A named group of containers monitored together."""

    name: str = Field(..., min_length=1, description="Configuration name")
    containers: list[str] = Field(..., min_length=1, description="Container names or id prefixes")
    interval: int = Field(default=5, ge=1, le=3600, description="Sampling interval in seconds")
    created_at: datetime = Field(default_factory=datetime.now)
    region: str = Field(default=DEFAULT_REGION, description="Pricing region for egress cost")
    proxy_patterns: list[str] = Field(
        default_factory=list,
        description="Extra image/name substrings treated as proxies (e.g. LLM gateways)",
    )
    max_workers: int = Field(
        default=DEFAULT_MAX_WORKERS, ge=1, le=256, description="Concurrent stats fetches per tick"
    )
    cpu_baseline: CpuBaseline = Field(default=CpuBaseline.RUNTIME)
    classify_network: bool = Field(default=True, description="Classify traffic by destination")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject names that cannot be used as a file name."""
        if any(ch in v for ch in "/\\") or v in (".", ".."):
            raise ValueError(f"Invalid configuration name: {v!r}")
        return v

    @field_validator("containers")
    @classmethod
    def dedupe_containers(cls, v: list[str]) -> list[str]:
        """Strip blanks and drop duplicates while keeping the declared order."""
        names = list(dict.fromkeys(name.strip() for name in v if name.strip()))
        if not names:
            raise ValueError("At least one non-blank container name is required")
        return names


# =============================================================================
# RUNTIME DESCRIPTORS
# =============================================================================


class HostInfo(BaseModel):
    """Host descriptor captured once at session start."""

    hostname: str = ""
    cpu_model: str = "unknown"
    cpu_cores: int = Field(default=0, ge=0)
    memory_total: int = Field(default=0, ge=0)
    architecture: str = ""
    os: str = ""
    kernel_version: str = ""
    docker_version: str = ""


class ContainerLimits(BaseModel):
    """Resource limits declared on a container (0 means unset)."""

    cpu_quota: int = 0
    cpu_period: int = 0
    cpu_shares: int = 0
    memory_limit: int = Field(default=0, ge=0)
    memory_reservation: int = Field(default=0, ge=0)
    memory_swap: int = 0
    pids_limit: int = 0


class NetworkEndpoint(BaseModel):
    """A container's attachment to one runtime network."""

    ip_address: str = ""
    global_ipv6_address: str = ""

    @property
    def addresses(self) -> list[str]:
        return [a for a in (self.ip_address, self.global_ipv6_address) if a]


class ContainerInfo(BaseModel):
    """Basic container information from the runtime listing."""

    id: str
    name: str
    image: str = ""
    status: str = ""
    created: datetime | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    networks: dict[str, NetworkEndpoint] = Field(default_factory=dict)

    @property
    def short_id(self) -> str:
        return self.id[:12]

    @property
    def addresses(self) -> list[str]:
        """All addresses across attached networks, in network order."""
        result: list[str] = []
        for endpoint in self.networks.values():
            result.extend(endpoint.addresses)
        return result


# =============================================================================
# SAMPLES AND SERIES
# =============================================================================


class Sample(BaseModel):
    """One metrics snapshot for one container.

    Rate fields are zero on a container's first sample. They are not clamped:
    a counter reset between two samples yields one negative rate.
    """

    timestamp: datetime
    cpu_percent: float = Field(default=0.0, ge=0)
    memory_usage: int = Field(default=0, ge=0)
    memory_percent: float | None = Field(default=None, ge=0)
    memory_cache: int = Field(default=0, ge=0)
    # Network (cumulative bytes + bytes/sec)
    net_rx_bytes: int = Field(default=0, ge=0)
    net_tx_bytes: int = Field(default=0, ge=0)
    net_rx_rate: float = 0.0
    net_tx_rate: float = 0.0
    # Block I/O (cumulative bytes + bytes/sec)
    block_read: int = Field(default=0, ge=0)
    block_write: int = Field(default=0, ge=0)
    block_read_rate: float = 0.0
    block_write_rate: float = 0.0
    pids_count: int = Field(default=0, ge=0)
    # Traffic classification: active connection counts
    net_conn_inter_container: int = Field(default=0, ge=0)
    net_conn_internal: int = Field(default=0, ge=0)
    net_conn_internet: int = Field(default=0, ge=0)
    # Traffic classification: bytes per destination class
    net_bytes_inter_container: int = Field(default=0, ge=0)
    net_bytes_internal: int = Field(default=0, ge=0)
    net_bytes_internet: int = Field(default=0, ge=0)
    net_bytes_source: BytesSource | None = None
    # Monitoring run that produced this sample (absent on legacy data)
    session_id: str | None = None


class MetricSummary(BaseModel):
    """Aggregate of one metric over a sample range.

    ``total`` is set only for metrics backed by a cumulative counter.
    """

    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    total: float | None = None


class NetworkBreakdown(BaseModel):
    """Share of traffic per destination class (sums to 100)."""

    inter_container_pct: float = Field(ge=0, le=100)
    internal_pct: float = Field(ge=0, le=100)
    internet_pct: float = Field(ge=0, le=100)
    source: str = Field(default="bytes", description="'bytes' or 'connections'")


class ContainerSummary(BaseModel):
    """All per-metric summaries for one container and sample range."""

    cpu_percent: MetricSummary = Field(default_factory=MetricSummary)
    memory_usage: MetricSummary = Field(default_factory=MetricSummary)
    memory_percent: MetricSummary = Field(default_factory=MetricSummary)
    net_rx_rate: MetricSummary = Field(default_factory=MetricSummary)
    net_tx_rate: MetricSummary = Field(default_factory=MetricSummary)
    block_read_rate: MetricSummary = Field(default_factory=MetricSummary)
    block_write_rate: MetricSummary = Field(default_factory=MetricSummary)
    pids_count: MetricSummary = Field(default_factory=MetricSummary)
    net_rx_total: int = Field(default=0, ge=0)
    net_tx_total: int = Field(default=0, ge=0)
    block_read_total: int = Field(default=0, ge=0)
    block_write_total: int = Field(default=0, ge=0)
    sample_count: int = Field(default=0, ge=0)
    duration: str = ""
    duration_seconds: float = Field(default=0.0, ge=0)
    warnings: list[str] = Field(default_factory=list)
    network_breakdown: NetworkBreakdown | None = None

    def metric(self, kind: MetricKind) -> MetricSummary:
        """Return the summary for a metric kind."""
        summary: MetricSummary = getattr(self, kind.value)
        return summary


class NetworkCostEstimate(BaseModel):
    """Rough data-transfer cost for a sample range (flat per-GB rate)."""

    region: str
    egress_gb: float = Field(ge=0)
    ingress_gb: float = Field(default=0.0, ge=0)
    estimated_cost_usd: float = Field(ge=0)
    price_per_gb: float = Field(ge=0)
    notes: str = ""


class InstanceRecommendation(BaseModel):
    """Instance type suggestion for one architecture."""

    instance_type: str
    vcpu: int = Field(ge=1)
    memory_gb: float = Field(gt=0)
    reason: str
    hourly_price: float = Field(default=0.0, ge=0)
    architecture: Architecture


class DualRecommendation(BaseModel):
    """Recommendations for both architectures, with ARM savings when both exist."""

    x86: InstanceRecommendation | None = None
    arm: InstanceRecommendation | None = None
    arm_savings_pct: float | None = None


class ContainerSeries(BaseModel):
    """Persisted record for one container: identity, context and samples.

    Samples are append-only and ordered by timestamp. ``summary``,
    ``network_cost`` and ``recommendation`` stay absent until computed.
    """

    container_id: str
    container_name: str
    image_name: str = "unknown"
    host: HostInfo = Field(default_factory=HostInfo)
    limits: ContainerLimits = Field(default_factory=ContainerLimits)
    start_time: datetime
    end_time: datetime | None = None
    interval_seconds: int = Field(default=5, ge=1)
    session_id: str | None = None
    samples: list[Sample] = Field(default_factory=list)
    summary: ContainerSummary | None = None
    network_cost: NetworkCostEstimate | None = None
    recommendation: InstanceRecommendation | None = None

    @property
    def short_id(self) -> str:
        return self.container_id[:12]


# =============================================================================
# SESSIONS
# =============================================================================


class Session(BaseModel):
    """A contiguous run of samples for one container."""

    session_id: str
    start_time: datetime
    end_time: datetime
    samples: list[Sample] = Field(default_factory=list)

    @property
    def sample_count(self) -> int:
        return len(self.samples)


class SessionInfo(BaseModel):
    """A monitoring session across all containers of a configuration."""

    session_id: str
    config_name: str = ""
    start_time: datetime
    end_time: datetime
    sample_count: int = Field(default=0, ge=0)
    containers: list[str] = Field(default_factory=list)
