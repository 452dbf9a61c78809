"""Configuration loading for the command-line wrapper.

The library entry point ``validate`` takes no configuration; these settings
only drive ``purl-validator`` commands.

Settings are loaded in priority order (highest first):
  1. Environment variables  (PURL_VALIDATOR__INDEX__PATH=/data/purls.fst)
  2. purl-validator.yaml    (searched in cwd, then the user config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from purl_validator.index import DEFAULT_INDEX_PATH

_CONFIG_FILENAME = "purl-validator.yaml"
_DEFAULT_CONFIG_DIR = platformdirs.user_config_dir("purl-validator")


def _find_config_file() -> str | None:
    """Return the path of the first purl-validator.yaml found, or None."""
    candidates = [
        Path(_CONFIG_FILENAME),
        Path(_DEFAULT_CONFIG_DIR) / _CONFIG_FILENAME,
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class IndexSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = str(DEFAULT_INDEX_PATH)
    verify_checksum: bool = True


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: PURL_VALIDATOR__LOGGING__LEVEL=INFO
        env_prefix="PURL_VALIDATOR__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    index: IndexSettings = IndexSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
