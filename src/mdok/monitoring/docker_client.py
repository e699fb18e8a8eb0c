"""DockerRuntimeClient - RuntimeClient implementation using the Docker Engine API.

Wraps the docker SDK (``docker.from_env()``) and maps its objects onto mdok
schemas. SDK and transport errors are translated into RuntimeClientError /
ContainerNotFoundError so callers never need to import docker themselves.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from datetime import datetime
from typing import TYPE_CHECKING, Any

import docker
from docker.errors import DockerException, NotFound

from mdok.core.schemas import ContainerInfo, ContainerLimits, HostInfo, NetworkEndpoint
from mdok.monitoring.base import (
    ContainerNotFoundError,
    RuntimeClient,
    RuntimeClientError,
    read_cpu_model,
)

if TYPE_CHECKING:
    from docker.models.containers import Container

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Re-raise docker SDK / transport errors as runtime client errors."""
    try:
        yield
    except NotFound as e:
        raise ContainerNotFoundError(f"{action}: {e.explanation or e}") from e
    except (DockerException, OSError) as e:
        # requests' ConnectionError is an OSError subclass
        raise RuntimeClientError(f"{action}: {e}") from e


def _parse_created(value: str | None) -> datetime | None:
    """Parse Docker's RFC3339 'Created' timestamp (nanosecond precision)."""
    if not value:
        return None
    text = value.rstrip("Z")
    if "." in text:
        head, frac = text.split(".", 1)
        text = f"{head}.{frac[:6]}"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _container_info(container: Container) -> ContainerInfo:
    attrs = container.attrs
    config = attrs.get("Config") or {}
    networks = (attrs.get("NetworkSettings") or {}).get("Networks") or {}
    return ContainerInfo(
        id=container.id,
        name=container.name.lstrip("/"),
        image=config.get("Image", ""),
        status=container.status,
        created=_parse_created(attrs.get("Created")),
        labels=config.get("Labels") or {},
        networks={
            net_name: NetworkEndpoint(
                ip_address=(net or {}).get("IPAddress") or "",
                global_ipv6_address=(net or {}).get("GlobalIPv6Address") or "",
            )
            for net_name, net in networks.items()
        },
    )


class DockerRuntimeClient(RuntimeClient):
    """RuntimeClient backed by the local Docker daemon.

    Example:
        ```python
        client = DockerRuntimeClient()
        client.ping()
        for info in client.list_containers():
            print(info.name, info.image)
        ```
    """

    def __init__(self, client: docker.DockerClient | None = None) -> None:
        """Initialize the client.

        Args:
            client: Existing docker SDK client (defaults to ``docker.from_env()``)

        Raises:
            RuntimeClientError: If the Docker environment cannot be configured
        """
        if client is None:
            with _translate_errors("Failed to create Docker client"):
                client = docker.from_env()
        self._client = client

    def ping(self) -> None:
        with _translate_errors("Docker daemon not reachable"):
            self._client.ping()

    def _get(self, container_id: str) -> Container:
        with _translate_errors(f"Failed to inspect container {container_id}"):
            return self._client.containers.get(container_id)

    def list_containers(self) -> list[ContainerInfo]:
        with _translate_errors("Failed to list containers"):
            containers = self._client.containers.list()
        return [_container_info(c) for c in containers]

    def resolve_id(self, name_or_id: str) -> str:
        return self._get(name_or_id).id

    def get_limits(self, container_id: str) -> ContainerLimits:
        host_config = self._get(container_id).attrs.get("HostConfig") or {}
        return ContainerLimits(
            cpu_quota=host_config.get("CpuQuota") or 0,
            cpu_period=host_config.get("CpuPeriod") or 0,
            cpu_shares=host_config.get("CpuShares") or 0,
            memory_limit=host_config.get("Memory") or 0,
            memory_reservation=host_config.get("MemoryReservation") or 0,
            memory_swap=host_config.get("MemorySwap") or 0,
            # -1 and None both mean unlimited
            pids_limit=max(host_config.get("PidsLimit") or 0, 0),
        )

    def get_image(self, container_id: str) -> str:
        config = self._get(container_id).attrs.get("Config") or {}
        return config.get("Image") or "unknown"

    def get_host_info(self) -> HostInfo:
        with _translate_errors("Failed to get Docker info"):
            info = self._client.info()
            version = self._client.version()
        return HostInfo(
            hostname=info.get("Name", ""),
            cpu_model=read_cpu_model(),
            cpu_cores=info.get("NCPU", 0),
            memory_total=info.get("MemTotal", 0),
            architecture=info.get("Architecture", ""),
            os=info.get("OperatingSystem", ""),
            kernel_version=info.get("KernelVersion", ""),
            docker_version=version.get("Version", ""),
        )

    def stats_snapshot(self, container_id: str) -> dict[str, Any]:
        container = self._get(container_id)
        with _translate_errors(f"Failed to get stats for {container_id[:12]}"):
            stats: dict[str, Any] = container.stats(stream=False)
        return stats

    def exec_capture(self, container_id: str, command: list[str]) -> str:
        container = self._get(container_id)
        with _translate_errors(f"Failed to exec {command[0]} in {container_id[:12]}"):
            result = container.exec_run(command, stdout=True, stderr=False)
        if result.exit_code != 0:
            raise RuntimeClientError(
                f"{' '.join(command)} exited with {result.exit_code} in {container_id[:12]}"
            )
        output = result.output or b""
        return output.decode("utf-8", errors="replace")

    def is_running(self, container_id: str) -> bool:
        return self._get(container_id).status == "running"

    def close(self) -> None:
        with contextlib.suppress(DockerException, OSError):
            self._client.close()
