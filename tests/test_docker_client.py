"""Tests for DockerRuntimeClient with a mocked docker SDK client."""

from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, NotFound

from mdok.monitoring.base import ContainerNotFoundError, RuntimeClientError, read_cpu_model
from mdok.monitoring.docker_client import DockerRuntimeClient


def create_mock_container(**attrs) -> MagicMock:
    container = MagicMock()
    container.id = "a" * 64
    container.name = "/web"
    container.status = "running"
    container.attrs = {
        "Created": "2024-01-01T12:00:00.123456789Z",
        "Config": {"Image": "nginx:1.25", "Labels": {"mdok.proxy": "false"}},
        "HostConfig": {
            "CpuQuota": 50_000,
            "CpuPeriod": 100_000,
            "Memory": 512 * 1024 * 1024,
            "PidsLimit": -1,
        },
        "NetworkSettings": {
            "Networks": {"backend": {"IPAddress": "172.18.0.5", "GlobalIPv6Address": ""}}
        },
        **attrs,
    }
    return container


class TestDockerRuntimeClient:
    """Tests for DockerRuntimeClient."""

    def test_list_containers(self):
        sdk = MagicMock()
        sdk.containers.list.return_value = [create_mock_container()]

        infos = DockerRuntimeClient(sdk).list_containers()

        assert len(infos) == 1
        info = infos[0]
        assert info.name == "web"
        assert info.image == "nginx:1.25"
        assert info.labels == {"mdok.proxy": "false"}
        assert info.addresses == ["172.18.0.5"]
        assert info.created is not None and info.created.microsecond == 123456

    def test_get_limits(self):
        sdk = MagicMock()
        sdk.containers.get.return_value = create_mock_container()

        limits = DockerRuntimeClient(sdk).get_limits("web")

        assert limits.cpu_quota == 50_000
        assert limits.cpu_period == 100_000
        assert limits.memory_limit == 512 * 1024 * 1024
        assert limits.pids_limit == 0
        assert limits.cpu_shares == 0

    def test_not_found_is_translated(self):
        sdk = MagicMock()
        sdk.containers.get.side_effect = NotFound("No such container: ghost")

        with pytest.raises(ContainerNotFoundError):
            DockerRuntimeClient(sdk).resolve_id("ghost")

    def test_api_error_is_translated(self):
        sdk = MagicMock()
        sdk.ping.side_effect = APIError("boom")

        with pytest.raises(RuntimeClientError):
            DockerRuntimeClient(sdk).ping()

    def test_connection_error_is_translated(self):
        sdk = MagicMock()
        sdk.containers.list.side_effect = ConnectionError("refused")

        with pytest.raises(RuntimeClientError):
            DockerRuntimeClient(sdk).list_containers()

    def test_exec_capture(self):
        container = create_mock_container()
        container.exec_run.return_value = MagicMock(exit_code=0, output=b"line1\nline2\n")
        sdk = MagicMock()
        sdk.containers.get.return_value = container

        output = DockerRuntimeClient(sdk).exec_capture("web", ["cat", "/proc/net/tcp"])

        assert output == "line1\nline2\n"
        container.exec_run.assert_called_once_with(
            ["cat", "/proc/net/tcp"], stdout=True, stderr=False
        )

    def test_exec_capture_non_zero_exit(self):
        container = create_mock_container()
        container.exec_run.return_value = MagicMock(exit_code=1, output=b"")
        sdk = MagicMock()
        sdk.containers.get.return_value = container

        with pytest.raises(RuntimeClientError):
            DockerRuntimeClient(sdk).exec_capture("web", ["cat", "/proc/net/nf_conntrack"])

    def test_stats_snapshot_is_one_shot(self):
        container = create_mock_container()
        container.stats.return_value = {"pids_stats": {"current": 1}}
        sdk = MagicMock()
        sdk.containers.get.return_value = container

        assert DockerRuntimeClient(sdk).stats_snapshot("web") == {"pids_stats": {"current": 1}}
        container.stats.assert_called_once_with(stream=False)

    def test_host_info(self):
        sdk = MagicMock()
        sdk.info.return_value = {
            "Name": "host1",
            "NCPU": 8,
            "MemTotal": 16 * 1024**3,
            "Architecture": "aarch64",
            "OperatingSystem": "Ubuntu 22.04",
            "KernelVersion": "6.5.0",
        }
        sdk.version.return_value = {"Version": "24.0.7"}

        host = DockerRuntimeClient(sdk).get_host_info()

        assert host.hostname == "host1"
        assert host.cpu_cores == 8
        assert host.architecture == "aarch64"
        assert host.docker_version == "24.0.7"

    def test_close_suppresses_errors(self):
        sdk = MagicMock()
        sdk.close.side_effect = OSError("already closed")

        DockerRuntimeClient(sdk).close()


class TestReadCpuModel:
    def test_reads_model_name(self, tmp_path):
        cpuinfo = tmp_path / "cpuinfo"
        cpuinfo.write_text("processor\t: 0\nmodel name\t: Example CPU @ 3.00GHz\n")

        assert read_cpu_model(cpuinfo) == "Example CPU @ 3.00GHz"

    def test_missing_file(self, tmp_path):
        assert read_cpu_model(tmp_path / "missing") == "unknown"
