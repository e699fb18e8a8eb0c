"""Runtime client abstract class.

The collection loop and the traffic classifier only talk to the container
runtime through this interface, so tests and alternative runtimes can swap
the Docker implementation out.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from mdok.core.schemas import ContainerInfo, ContainerLimits, HostInfo

logger = logging.getLogger(__name__)


class RuntimeClientError(RuntimeError):
    """The runtime could not be reached or a runtime call failed."""


class ContainerNotFoundError(RuntimeClientError):
    """A container name or id no longer resolves."""


class RuntimeClient(ABC):
    """Abstract base class for container runtime clients.

    Implementations:
    - DockerRuntimeClient: Docker Engine API via the docker SDK
    """

    @abstractmethod
    def ping(self) -> None:
        """Verify the runtime is reachable.

        Raises:
            RuntimeClientError: If the runtime does not answer
        """

    @abstractmethod
    def list_containers(self) -> list[ContainerInfo]:
        """List running containers with labels and network attachments."""

    @abstractmethod
    def resolve_id(self, name_or_id: str) -> str:
        """Return the full container id for a name or id prefix.

        Raises:
            ContainerNotFoundError: If nothing matches
        """

    @abstractmethod
    def get_limits(self, container_id: str) -> ContainerLimits:
        """Return the container's declared resource limits."""

    @abstractmethod
    def get_image(self, container_id: str) -> str:
        """Return the image reference the container was created from."""

    @abstractmethod
    def get_host_info(self) -> HostInfo:
        """Return aggregate host information reported by the runtime."""

    @abstractmethod
    def stats_snapshot(self, container_id: str) -> dict[str, Any]:
        """Return one non-streaming stats document for a container."""

    @abstractmethod
    def exec_capture(self, container_id: str, command: list[str]) -> str:
        """Run a short-lived command inside the container and return its stdout.

        Raises:
            RuntimeClientError: If the command cannot be run or exits non-zero
        """

    @abstractmethod
    def is_running(self, container_id: str) -> bool:
        """Check whether the container is still running."""

    def close(self) -> None:  # noqa: B027
        """Release the underlying client handle."""


def read_cpu_model(cpuinfo: Path = Path("/proc/cpuinfo")) -> str:
    """Read the CPU model name from /proc/cpuinfo.

    Returns:
        Model name, or "unknown" if unavailable (non-Linux hosts)
    """
    try:
        with open(cpuinfo, encoding="utf-8") as f:
            for line in f:
                if line.startswith("model name"):
                    _, _, value = line.partition(":")
                    return value.strip() or "unknown"
    except OSError as e:
        logger.debug(f"Could not read {cpuinfo}: {e}")
    return "unknown"
