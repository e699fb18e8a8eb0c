"""Network traffic classification for containers.

Connections leaving a container are bucketed by destination:

- inter-container: another container sharing a network with the target
- internal: private, loopback or link-local addresses
- internet: everything else, including traffic to proxy containers

Proxies (reverse proxies, API/LLM gateways) relay traffic to the internet, so
their addresses count as internet even when they share a network with the
target. Proxy detection uses the ``mdok.proxy`` label first, then image/name
substring patterns.

Two data sources are read from inside the container:
- /proc/net/tcp{,6}: active connections (counts only)
- /proc/net/nf_conntrack: flows with byte counters (needs CAP_NET_ADMIN/host netns)

Introspection is best-effort. Any failure degrades to empty counts.
"""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from mdok.core.constants import (
    CONNTRACK_FILE,
    DEFAULT_PROXY_PATTERNS,
    PROC_NET_TCP_FILES,
    PROXY_LABEL_KEY,
)
from mdok.core.schemas import BytesSource, ContainerInfo, Sample
from mdok.monitoring.base import RuntimeClient, RuntimeClientError

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_PRIVATE_NETWORKS = tuple(
    ipaddress.ip_network(block)
    for block in (
        "10.0.0.0/8",  # RFC1918
        "172.16.0.0/12",  # RFC1918
        "192.168.0.0/16",  # RFC1918
        "169.254.0.0/16",  # IPv4 link-local
        "127.0.0.0/8",  # IPv4 loopback
        "224.0.0.0/24",  # IPv4 link-local multicast
        "fc00::/7",  # IPv6 unique local
        "fe80::/10",  # IPv6 link-local
        "::1/128",  # IPv6 loopback
        "ff02::/16",  # IPv6 link-local multicast
    )
)

_LABEL_TRUE = ("true", "yes", "1")
_LABEL_FALSE = ("false", "no", "0")


class TrafficClass(str, Enum):
    """Destination class of a connection or flow."""

    INTER_CONTAINER = "inter_container"
    INTERNAL = "internal"
    INTERNET = "internet"


@dataclass
class ClassCounts:
    """Per-class tallies (connections or bytes)."""

    inter_container: int = 0
    internal: int = 0
    internet: int = 0

    def add(self, traffic_class: TrafficClass, amount: int = 1) -> None:
        setattr(self, traffic_class.value, getattr(self, traffic_class.value) + amount)

    def merge(self, other: ClassCounts) -> None:
        self.inter_container += other.inter_container
        self.internal += other.internal
        self.internet += other.internet

    @property
    def total(self) -> int:
        return self.inter_container + self.internal + self.internet


@dataclass
class PeerSets:
    """Addresses used to classify a target container's traffic."""

    container_ips: set[str] = field(default_factory=set)
    proxy_ips: set[str] = field(default_factory=set)


@dataclass
class NetworkStats:
    """Classification result for one container and tick."""

    connections: ClassCounts = field(default_factory=ClassCounts)
    bytes: ClassCounts = field(default_factory=ClassCounts)
    bytes_source: BytesSource | None = None

    def apply_to(self, sample: Sample) -> Sample:
        """Return a copy of ``sample`` carrying these counts."""
        return sample.model_copy(
            update={
                "net_conn_inter_container": self.connections.inter_container,
                "net_conn_internal": self.connections.internal,
                "net_conn_internet": self.connections.internet,
                "net_bytes_inter_container": self.bytes.inter_container,
                "net_bytes_internal": self.bytes.internal,
                "net_bytes_internet": self.bytes.internet,
                "net_bytes_source": self.bytes_source,
            }
        )


def normalize_ip(value: str | IPAddress) -> IPAddress | None:
    """Parse an address, unwrapping IPv4-mapped IPv6 (::ffff:a.b.c.d)."""
    try:
        ip = ipaddress.ip_address(value) if isinstance(value, str) else value
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return ip.ipv4_mapped
    return ip


def is_private_ip(ip: IPAddress) -> bool:
    """Private (RFC1918/ULA), loopback, link-local or link-local multicast."""
    return any(ip in network for network in _PRIVATE_NETWORKS if network.version == ip.version)


def is_proxy_container(
    container: ContainerInfo, patterns: Iterable[str] = DEFAULT_PROXY_PATTERNS
) -> bool:
    """Decide whether a container is an egress proxy.

    An explicit ``mdok.proxy`` label wins in both directions. Unrecognized
    label values count as "not a proxy". Without the label, the image and
    name are matched case-insensitively against ``patterns``.
    """
    label = container.labels.get(PROXY_LABEL_KEY)
    if label is not None:
        value = label.strip().lower()
        if value in _LABEL_FALSE:
            return False
        return value in _LABEL_TRUE

    image = container.image.lower()
    name = container.name.lower()
    for pattern in patterns:
        pattern = pattern.lower()
        if pattern and (pattern in image or pattern in name):
            return True
    return False


def build_peer_sets(
    target_id: str,
    containers: Iterable[ContainerInfo],
    patterns: Iterable[str] = DEFAULT_PROXY_PATTERNS,
) -> PeerSets:
    """Collect proxy addresses (system-wide) and co-located container addresses.

    Args:
        target_id: Full or short id of the container being classified
        containers: Running containers (the target may be among them)
        patterns: Proxy image/name substrings

    Returns:
        PeerSets; proxies never appear in ``container_ips``
    """
    patterns = tuple(patterns)
    containers = list(containers)
    target_networks: set[str] = set()
    others: list[ContainerInfo] = []
    for c in containers:
        if c.id == target_id or c.id.startswith(target_id) or target_id.startswith(c.id):
            target_networks.update(c.networks)
        else:
            others.append(c)

    peers = PeerSets()
    for c in others:
        if is_proxy_container(c, patterns):
            peers.proxy_ips.update(c.addresses)
        elif target_networks.intersection(c.networks):
            peers.container_ips.update(c.addresses)
    return peers


def classify_address(ip: IPAddress, peers: PeerSets) -> TrafficClass:
    """Classify one destination; first match wins."""
    address = str(ip)
    if address in peers.proxy_ips:
        return TrafficClass.INTERNET
    if address in peers.container_ips:
        return TrafficClass.INTER_CONTAINER
    if is_private_ip(ip):
        return TrafficClass.INTERNAL
    return TrafficClass.INTERNET


def parse_hex_ip(hex_ip: str) -> IPAddress | None:
    """Decode an address from /proc/net/tcp{,6} notation.

    The kernel prints each 32-bit word in host (little-endian) byte order,
    e.g. "0100007F" is 127.0.0.1.
    """
    try:
        if len(hex_ip) == 8:
            return ipaddress.IPv4Address(bytes.fromhex(hex_ip)[::-1])
        if len(hex_ip) == 32:
            packed = b"".join(
                bytes.fromhex(hex_ip[i : i + 8])[::-1] for i in range(0, 32, 8)
            )
            return normalize_ip(ipaddress.IPv6Address(packed))
    except ValueError:
        return None
    return None


def count_connections(table: str, peers: PeerSets) -> ClassCounts:
    """Classify connections listed in a /proc/net/tcp{,6} table.

    Format (after the header line):
        sl  local_address rem_address   st ...
        0: 0100007F:1F90 0300A8C0:D431 01 ...
    """
    counts = ClassCounts()
    for line in table.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 3:
            continue
        parts = fields[2].split(":")
        if len(parts) != 2:
            continue
        ip = parse_hex_ip(parts[0])
        if ip is None or ip.is_unspecified:
            continue
        counts.add(classify_address(ip, peers))
    return counts


def extract_conntrack_field(line: str, key: str) -> str:
    """Value of the first ``key=value`` token in a conntrack line ('' if absent)."""
    prefix = f"{key}="
    for token in line.split():
        if token.startswith(prefix):
            return token[len(prefix) :]
    return ""


def sum_conntrack_bytes(table: str, peers: PeerSets, self_ips: set[str]) -> ClassCounts:
    """Sum outbound bytes per destination class from nf_conntrack.

    Format:
        ipv4 2 tcp 6 431999 ESTABLISHED src=172.18.0.5 dst=172.18.0.3 sport=45678
        dport=5432 packets=100 bytes=12345 src=... (reply direction)

    Only the first (original direction) src/dst/bytes are used, and only flows
    whose source is one of the container's own addresses are counted.
    """
    totals = ClassCounts()
    for line in table.splitlines():
        src = extract_conntrack_field(line, "src")
        if not src or src not in self_ips:
            continue
        dst = normalize_ip(extract_conntrack_field(line, "dst"))
        if dst is None:
            continue
        byte_field = extract_conntrack_field(line, "bytes")
        if not byte_field.isdigit():
            continue
        totals.add(classify_address(dst, peers), int(byte_field))
    return totals


class NetworkInspector:
    """Collects per-tick traffic classification for containers.

    Example:
        ```python
        inspector = NetworkInspector(client, extra_patterns=["my-gateway"])
        stats = inspector.collect(container_id)
        sample = stats.apply_to(sample)
        ```
    """

    def __init__(self, client: RuntimeClient, extra_patterns: Iterable[str] = ()) -> None:
        self._client = client
        self._patterns = tuple(DEFAULT_PROXY_PATTERNS) + tuple(p for p in extra_patterns if p)

    @property
    def patterns(self) -> tuple[str, ...]:
        return self._patterns

    def collect(
        self, container_id: str, containers: list[ContainerInfo] | None = None
    ) -> NetworkStats:
        """Classify a container's connections and (when readable) flow bytes.

        Args:
            container_id: Full container id
            containers: Current container listing (fetched if not given)

        Returns:
            NetworkStats; empty if the listing cannot be obtained or does
            not include the container
        """
        stats = NetworkStats()
        if containers is None:
            try:
                containers = self._client.list_containers()
            except RuntimeClientError as e:
                logger.debug(f"Network classification skipped for {container_id[:12]}: {e}")
                return stats
        if not any(c.id == container_id for c in containers):
            logger.debug(f"Network classification skipped for {container_id[:12]}: not listed")
            return stats

        peers = build_peer_sets(container_id, containers, self._patterns)
        self_ips: set[str] = set()
        for c in containers:
            if c.id == container_id:
                self_ips.update(c.addresses)

        if self_ips:
            try:
                table = self._client.exec_capture(container_id, ["cat", CONNTRACK_FILE])
            except RuntimeClientError as e:
                logger.debug(f"conntrack not readable in {container_id[:12]}: {e}")
            else:
                stats.bytes = sum_conntrack_bytes(table, peers, self_ips)
                if stats.bytes.total > 0:
                    stats.bytes_source = BytesSource.CONNTRACK

        for proc_file in PROC_NET_TCP_FILES:
            try:
                table = self._client.exec_capture(container_id, ["cat", proc_file])
            except RuntimeClientError as e:
                logger.debug(f"{proc_file} not readable in {container_id[:12]}: {e}")
                continue
            stats.connections.merge(count_connections(table, peers))

        if stats.bytes_source is None and stats.connections.total > 0:
            stats.bytes_source = BytesSource.ESTIMATED

        return stats
