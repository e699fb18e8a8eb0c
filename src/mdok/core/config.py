"""Configuration loading and saving utilities.

Supports YAML and JSON configuration files with schema validation, plus the
``Workspace`` value that locates configs, data and logs on disk.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from mdok.core.constants import DEFAULT_HOME_DIRNAME, HOME_ENV_VAR
from mdok.core.schemas import MonitorConfig


@dataclass(frozen=True)
class Workspace:
    """Directory layout for one mdok installation.

    Passed explicitly to storage and monitor constructors.
    """

    root: Path

    @classmethod
    def default(cls) -> Workspace:
        """Resolve the workspace from MDOK_HOME, falling back to ~/.mdok."""
        override = os.environ.get(HOME_ENV_VAR)
        if override:
            return cls(Path(override).expanduser())
        return cls(Path.home() / DEFAULT_HOME_DIRNAME)

    @property
    def configs_dir(self) -> Path:
        return self.root / "configs"

    @property
    def logs_dir(self) -> Path:
        return self.root / "logs"

    def config_file(self, config_name: str) -> Path:
        return self.configs_dir / f"{config_name}.yaml"

    def data_dir(self, config_name: str) -> Path:
        return self.root / "data" / config_name

    def log_file(self, config_name: str) -> Path:
        return self.logs_dir / f"{config_name}.log"


def load_config(path: Path | str) -> MonitorConfig:
    """Load and validate a monitoring configuration file.

    Args:
        path: Path to YAML or JSON configuration file

    Returns:
        Validated MonitorConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported
        pydantic.ValidationError: If config is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json")

    return MonitorConfig.model_validate(data)


def save_config(config: MonitorConfig, path: Path | str) -> Path:
    """Write a configuration as YAML, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.model_dump(mode="json"), f, sort_keys=False)
    return path
