"""Layered YAML configuration source."""

from __future__ import annotations

from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from deconflict.core.log import logger

PROJECT_CONFIG = "deconflict.yaml"


class LayeredYamlSettingsSource(YamlConfigSettingsSource):
    """YAML settings source reading defaults, user and project files.

    Deep merges, later files winning:
        package defaults < user config < ./deconflict.yaml
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        yaml_file: Path | str | None = None,
    ):
        super().__init__(
            settings_cls,
            yaml_file or settings_cls.model_config.get("yaml_file"),
        )

    def _read_files(self, files):
        """Load every config layer that exists and merge them.

        Args:
            files: Project config path from model_config

        Returns:
            Deep-merged dictionary of all loaded data
        """
        files_to_load = [
            Path(__file__).parent.parent / "defaults" / "default.yaml",
            Path(user_config_dir("deconflict", appauthor=False))
            / PROJECT_CONFIG,
        ]
        if files:
            if isinstance(files, (str, Path)):
                files = [files]
            files_to_load.extend(Path(f).expanduser() for f in files)

        result = {}
        for file_path in files_to_load:
            if file_path.is_file():
                logger.debug(
                    "Loading configuration", file=str(file_path)
                )
                with open(file_path, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
                result = self._deep_merge(result, data)
        return result

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Deep merge override into base (override wins)."""
        result = base.copy()
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
