"""Tests for configuration schemas and loading."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from mdok.core.config import Workspace, load_config, save_config
from mdok.core.schemas import Architecture, CpuBaseline, MonitorConfig


class TestMonitorConfig:
    """Tests for MonitorConfig validation."""

    def test_defaults(self):
        config = MonitorConfig(name="stack", containers=["web"])

        assert config.interval == 5
        assert config.region == "us-east-1"
        assert config.cpu_baseline is CpuBaseline.RUNTIME
        assert config.classify_network is True
        assert config.max_workers == 16

    def test_requires_containers(self):
        with pytest.raises(ValidationError):
            MonitorConfig(name="stack", containers=[])

    def test_interval_bounds(self):
        with pytest.raises(ValidationError):
            MonitorConfig(name="stack", containers=["web"], interval=0)

    def test_containers_deduplicated(self):
        config = MonitorConfig(name="stack", containers=["web", " db ", "web"])
        assert config.containers == ["web", "db"]

    @pytest.mark.parametrize("containers", [[" "], ["", "  "]])
    def test_blank_containers_rejected(self, containers):
        with pytest.raises(ValidationError):
            MonitorConfig(name="stack", containers=containers)

    @pytest.mark.parametrize("name", ["a/b", "..", "x\\y"])
    def test_invalid_names(self, name):
        with pytest.raises(ValidationError):
            MonitorConfig(name=name, containers=["web"])


class TestArchitecture:
    def test_from_host(self):
        assert Architecture.from_host("aarch64") is Architecture.ARM
        assert Architecture.from_host("armv7l") is Architecture.ARM
        assert Architecture.from_host("x86_64") is Architecture.X86
        assert Architecture.from_host("") is Architecture.X86


class TestConfigFiles:
    """Tests for load_config / save_config."""

    def test_yaml_round_trip(self, tmp_path):
        config = MonitorConfig(
            name="stack", containers=["web"], proxy_patterns=["gw"], cpu_baseline="local"
        )
        path = save_config(config, tmp_path / "configs" / "stack.yaml")

        loaded = load_config(path)
        assert loaded.proxy_patterns == ["gw"]
        assert loaded.cpu_baseline is CpuBaseline.LOCAL

    def test_load_json(self, tmp_path):
        path = tmp_path / "stack.json"
        path.write_text(json.dumps({"name": "stack", "containers": ["web"], "interval": 30}))

        assert load_config(path).interval == 30

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "stack.toml"
        path.write_text("name = 'stack'")
        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config(path)


class TestWorkspace:
    """Tests for Workspace layout and resolution."""

    def test_layout(self, tmp_path):
        ws = Workspace(tmp_path)

        assert ws.config_file("stack") == tmp_path / "configs" / "stack.yaml"
        assert ws.data_dir("stack") == tmp_path / "data" / "stack"
        assert ws.log_file("stack") == tmp_path / "logs" / "stack.log"

    def test_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MDOK_HOME", str(tmp_path))
        assert Workspace.default().root == tmp_path

    def test_home_default(self, monkeypatch):
        monkeypatch.delenv("MDOK_HOME", raising=False)
        assert Workspace.default().root == Path.home() / ".mdok"
