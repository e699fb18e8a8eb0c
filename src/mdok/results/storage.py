"""Series storage: one JSON document per container under each configuration."""

from __future__ import annotations

import json
import logging
import re
import shutil
from collections import deque
from pathlib import Path

import yaml
from pydantic import ValidationError

from mdok.core.config import Workspace, load_config, save_config
from mdok.core.schemas import ContainerSeries, MonitorConfig

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\:*?"<>| ]')


def sanitize_filename(name: str) -> str:
    """Make a container display name safe to use as a file name."""
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


class SeriesStorage:
    """Storage manager for monitoring configurations and their series.

    Layout under the workspace root::

        configs/<name>.yaml
        data/<name>/<container>.json
        logs/<name>.log

    Example:
        ```python
        storage = SeriesStorage(Workspace.default())
        storage.save_series("web", series)
        for s in storage.load_all("web"):
            print(s.container_name, len(s.samples))
        ```
    """

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    # ------------------------------------------------------------------
    # Configurations
    # ------------------------------------------------------------------

    def save_config(self, config: MonitorConfig) -> Path:
        """Persist a configuration, replacing any existing one with the same name."""
        path = save_config(config, self.workspace.config_file(config.name))
        logger.debug(f"Saved config {config.name} to {path}")
        return path

    def load_config(self, config_name: str) -> MonitorConfig:
        """Load a configuration by name.

        Raises:
            FileNotFoundError: If no such configuration exists
        """
        return load_config(self.workspace.config_file(config_name))

    def config_exists(self, config_name: str) -> bool:
        return self.workspace.config_file(config_name).exists()

    def list_configs(self) -> list[MonitorConfig]:
        """All readable configurations, sorted by name."""
        configs_dir = self.workspace.configs_dir
        if not configs_dir.exists():
            return []

        configs = []
        for path in sorted(configs_dir.glob("*.yaml")):
            try:
                configs.append(load_config(path))
            except (OSError, ValueError, ValidationError, yaml.YAMLError) as e:
                logger.warning(f"Skipping unreadable config {path.name}: {e}")
        return configs

    def delete_config(self, config_name: str) -> None:
        """Remove a configuration together with its data and log.

        Raises:
            FileNotFoundError: If no such configuration exists
        """
        config_file = self.workspace.config_file(config_name)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration not found: {config_name}")

        config_file.unlink()
        data_dir = self.workspace.data_dir(config_name)
        if data_dir.exists():
            shutil.rmtree(data_dir)
        self.workspace.log_file(config_name).unlink(missing_ok=True)
        logger.info(f"Deleted configuration {config_name}")

    def tail_log(self, config_name: str, lines: int) -> list[str] | None:
        """Last ``lines`` lines of a configuration's log, or None if it has none."""
        log_file = self.workspace.log_file(config_name)
        if not log_file.exists():
            return None
        with open(log_file, encoding="utf-8", errors="replace") as f:
            return [line.rstrip("\n") for line in deque(f, maxlen=lines)]

    # ------------------------------------------------------------------
    # Series
    # ------------------------------------------------------------------

    def series_path(self, config_name: str, container_name: str) -> Path:
        return self.workspace.data_dir(config_name) / f"{sanitize_filename(container_name)}.json"

    def save_series(self, config_name: str, series: ContainerSeries) -> Path:
        """Write the full series, replacing the previous document.

        The document is written to a temporary file first and renamed into
        place so readers never observe a partial write.

        Raises:
            OSError: If the file cannot be written
        """
        path = self.series_path(config_name, series.container_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(series.model_dump(mode="json"), f, indent=2)
        tmp_path.replace(path)
        return path

    def load_series(self, config_name: str, container_name: str) -> ContainerSeries | None:
        """Load one container's series, or None if it was never saved.

        Raises:
            ValueError: If the stored document is malformed
        """
        path = self.series_path(config_name, container_name)
        if not path.exists():
            return None
        return self._read(path)

    def load_all(self, config_name: str) -> list[ContainerSeries]:
        """All series of a configuration, sorted by container name.

        Unreadable documents are logged and skipped.
        """
        data_dir = self.workspace.data_dir(config_name)
        if not data_dir.exists():
            return []

        result = []
        for path in sorted(data_dir.glob("*.json")):
            try:
                result.append(self._read(path))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable series {path.name}: {e}")
        result.sort(key=lambda s: s.container_name)
        return result

    def _read(self, path: Path) -> ContainerSeries:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return ContainerSeries.model_validate(data)
