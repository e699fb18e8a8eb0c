"""Cost and sizing advice from aggregated statistics.

Prices are approximate on-demand AWS list prices and only meant to give an
order of magnitude. Data transfer uses a flat per-GB rate (ingress is free);
instance sizing picks the first catalog entry that fits P95 usage plus 20%
headroom.
"""

from __future__ import annotations

from dataclasses import dataclass

from mdok.core.constants import BYTES_PER_GIB, DEFAULT_REGION
from mdok.core.schemas import (
    Architecture,
    ContainerSummary,
    DualRecommendation,
    InstanceRecommendation,
    NetworkCostEstimate,
)

HEADROOM = 1.2

# USD per GB of internet egress
DATA_TRANSFER_PRICING: dict[str, float] = {
    "us-east-1": 0.09,
    "us-west-2": 0.09,
    "eu-west-1": 0.09,
    "ap-southeast-1": 0.12,
    "default": 0.09,
}


@dataclass(frozen=True)
class InstanceType:
    """One catalog entry."""

    name: str
    vcpu: int
    memory_gb: float
    hourly: float


# Order matters: the first entry that fits is recommended (smallest fit).
INSTANCE_CATALOGS: dict[Architecture, tuple[InstanceType, ...]] = {
    Architecture.X86: (
        InstanceType("t3.micro", 2, 1, 0.0104),
        InstanceType("t3.small", 2, 2, 0.0208),
        InstanceType("t3.medium", 2, 4, 0.0416),
        InstanceType("t3.large", 2, 8, 0.0832),
        InstanceType("t3.xlarge", 4, 16, 0.1664),
        InstanceType("m5.large", 2, 8, 0.096),
        InstanceType("m5.xlarge", 4, 16, 0.192),
        InstanceType("m5.2xlarge", 8, 32, 0.384),
        InstanceType("c5.large", 2, 4, 0.085),
        InstanceType("c5.xlarge", 4, 8, 0.17),
        InstanceType("c5.2xlarge", 8, 16, 0.34),
        InstanceType("r5.large", 2, 16, 0.126),
        InstanceType("r5.xlarge", 4, 32, 0.252),
    ),
    # Graviton, typically ~20% cheaper than the x86 equivalent
    Architecture.ARM: (
        InstanceType("t4g.micro", 2, 1, 0.0084),
        InstanceType("t4g.small", 2, 2, 0.0168),
        InstanceType("t4g.medium", 2, 4, 0.0336),
        InstanceType("t4g.large", 2, 8, 0.0672),
        InstanceType("t4g.xlarge", 4, 16, 0.1344),
        InstanceType("m7g.large", 2, 8, 0.0816),
        InstanceType("m7g.xlarge", 4, 16, 0.1632),
        InstanceType("m7g.2xlarge", 8, 32, 0.3264),
        InstanceType("c7g.large", 2, 4, 0.0725),
        InstanceType("c7g.xlarge", 4, 8, 0.145),
        InstanceType("c7g.2xlarge", 8, 16, 0.29),
        InstanceType("r7g.large", 2, 16, 0.1008),
        InstanceType("r7g.xlarge", 4, 32, 0.2016),
    ),
}


def estimate_network_cost(egress_bytes: int, region: str | None = None) -> NetworkCostEstimate:
    """Estimate data-transfer cost for the given egress volume.

    Args:
        egress_bytes: Bytes sent during the range
        region: Pricing region (defaults to us-east-1; unknown regions use the default rate)

    Returns:
        NetworkCostEstimate with ingress fixed at 0
    """
    region = region or DEFAULT_REGION
    price_per_gb = DATA_TRANSFER_PRICING.get(region, DATA_TRANSFER_PRICING["default"])
    egress_gb = egress_bytes / BYTES_PER_GIB
    return NetworkCostEstimate(
        region=region,
        egress_gb=egress_gb,
        ingress_gb=0.0,
        estimated_cost_usd=egress_gb * price_per_gb,
        price_per_gb=price_per_gb,
        notes="Estimate based on standard data transfer rates. Actual costs may vary.",
    )


def sizing_requirements(summary: ContainerSummary) -> tuple[float, float]:
    """Required (vCPU, memory GB) from P95 usage with 20% headroom."""
    required_cpu = summary.cpu_percent.p95 / 100 * HEADROOM
    required_mem_gb = summary.memory_usage.p95 / BYTES_PER_GIB * HEADROOM
    return required_cpu, required_mem_gb


def _reason(summary: ContainerSummary) -> str:
    if summary.cpu_percent.p95 > summary.memory_percent.p95:
        return f"CPU-bound workload (P95: {summary.cpu_percent.p95:.1f}%)"
    return (
        f"Memory-bound workload (P95: {summary.memory_percent.p95:.1f}%, "
        f"{summary.memory_usage.p95 / BYTES_PER_GIB:.2f} GB)"
    )


def recommend_instance(
    summary: ContainerSummary | None,
    architecture: Architecture = Architecture.X86,
    catalog: tuple[InstanceType, ...] | None = None,
) -> InstanceRecommendation | None:
    """Recommend the first catalog entry that covers the workload.

    Args:
        summary: Aggregated statistics (None yields None)
        architecture: Catalog to search
        catalog: Override for the architecture's catalog (same ordering rules)

    Returns:
        First fitting entry in catalog order; the last (largest) entry with a
        "requirements exceed" reason if none fits; None for an empty catalog
    """
    if summary is None:
        return None
    entries = INSTANCE_CATALOGS[architecture] if catalog is None else catalog
    if not entries:
        return None

    required_cpu, required_mem_gb = sizing_requirements(summary)
    for inst in entries:
        if inst.vcpu >= required_cpu and inst.memory_gb >= required_mem_gb:
            return InstanceRecommendation(
                instance_type=inst.name,
                vcpu=inst.vcpu,
                memory_gb=inst.memory_gb,
                reason=_reason(summary),
                hourly_price=inst.hourly,
                architecture=architecture,
            )

    largest = entries[-1]
    return InstanceRecommendation(
        instance_type=largest.name,
        vcpu=largest.vcpu,
        memory_gb=largest.memory_gb,
        reason="Resource requirements exceed common instance sizes",
        hourly_price=largest.hourly,
        architecture=architecture,
    )


def recommend_both_architectures(summary: ContainerSummary | None) -> DualRecommendation:
    """x86 and ARM recommendations, with ARM's hourly savings when both exist."""
    x86 = recommend_instance(summary, Architecture.X86)
    arm = recommend_instance(summary, Architecture.ARM)
    savings = None
    if x86 is not None and arm is not None and x86.hourly_price > 0:
        savings = (x86.hourly_price - arm.hourly_price) / x86.hourly_price * 100
    return DualRecommendation(x86=x86, arm=arm, arm_savings_pct=savings)
