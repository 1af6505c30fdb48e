"""Daemon configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import platformdirs
from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from deconflict.core.log import Logger
from deconflict.core.yaml_settings import (
    PROJECT_CONFIG,
    LayeredYamlSettingsSource,
)

DEFAULT_EXTENSIONS = "md,txt,json,yaml,yml,org,canvas,taskpaper"


class Settings(BaseSettings):
    """Reconciliation daemon settings.

    Configuration sources (in priority order):
    1. Command-line arguments (--settle_delay 500)
    2. Environment variables (SETTLE_DELAY=500)
    3. .env file
    4. ./deconflict.yaml, then the user config file, then package
       defaults
    """

    watch_path: Path = Field(
        default=Path("./Notes/Work"),
        description="Directory tree watched for conflict files",
    )
    sync_root: Path = Field(
        default=Path("./"),
        description="Root of the Syncthing folder holding the versions dir",
    )
    versions_dir: str = Field(
        default=".stversions",
        description="Name of the versions directory under sync_root",
    )
    git_bin: str = Field(
        default="git",
        description="Git binary providing merge-file",
    )
    settle_delay: int = Field(
        default=2500,
        ge=0,
        description="Milliseconds to wait for a conflict file to settle",
    )
    dry_run: bool = Field(
        default=False,
        description="Log what would happen without touching any file",
    )
    use_union_merge: bool = Field(
        default=False,
        description=(
            "Keep both sides of conflicting lines instead of writing "
            "conflict markers"
        ),
    )
    allowed_extensions: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: DEFAULT_EXTENSIONS.split(","),
        description=(
            "Extensions eligible for merging (comma list). An empty "
            "entry allows files without an extension"
        ),
    )
    verbose: bool = Field(
        default=False,
        description="Log at debug level on the console",
    )
    backup_before_merge: bool = Field(
        default=True,
        description="Copy the current file to <file>.<epoch>.bak first",
    )
    backup_keep: int = Field(
        default=5,
        ge=0,
        description="Backups retained per file (0 keeps all)",
    )
    merge_log_path: str = Field(
        default="",
        description="Markdown audit log path (empty disables it)",
    )
    stability_threshold: int = Field(
        default=200,
        ge=0,
        description=(
            "Milliseconds a watched file must stay unchanged before "
            "it is handed to the pipeline"
        ),
    )
    cleanup_grace: int = Field(
        default=500,
        ge=0,
        description=(
            "Milliseconds to wait after removing a conflict file before "
            "looking for its temp files"
        ),
    )
    log_root: Path = Field(
        default_factory=(
            lambda: Path(platformdirs.user_state_dir()) / "deconflict"
        ),
        description="Directory for the optional file log sink",
    )
    logger: Logger | None = Field(
        default=None,
        description="Logger sinks and levels",
    )

    model_config = SettingsConfigDict(
        yaml_file=PROJECT_CONFIG,
        env_file=".env",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        case_sensitive=False,
        cli_implicit_flags=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Environment beats YAML so container deployments can
        override the shipped defaults."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            LayeredYamlSettingsSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("allowed_extensions", mode="before")
    @classmethod
    def _split_extensions(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return [str(ext).strip().lower().lstrip(".") for ext in value]

    @property
    def marker_strategy(self) -> bool:
        """True when unresolved conflicts are written as markers."""
        return not self.use_union_merge

    @model_validator(mode='after')
    def _setup_logger(self) -> 'Settings':
        """Initialize the global logger once settings have loaded."""
        from deconflict.core.log import setup_logger

        if self.logger is None:
            self.logger = Logger()
        if self.verbose and self.logger.console.level in (None, "info"):
            self.logger.console.level = "debug"

        setup_logger(
            log_root=self.log_root,
            level=self.logger.level,
            console=self.logger.console,
            file=self.logger.file,
            logfire=self.logger.logfire,
        )
        return self

    def close(self):
        """Close the global logger and its sinks."""
        from deconflict.core.log import logger
        logger.close()


__all__ = ["Settings", "DEFAULT_EXTENSIONS"]
