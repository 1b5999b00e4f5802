"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (EDGEPURGE__STACKPATH__CLIENT_ID=...)
  2. edgepurge.yaml         (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional, but purging stays a silent no-op until the
StackPath credentials and a stack id are configured.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("edgepurge")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first edgepurge.yaml found, or None."""
    candidates = [
        Path("edgepurge.yaml"),
        Path(platformdirs.user_config_dir("edgepurge")) / "edgepurge.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class StackPathSettings(BaseModel):
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    # Chosen from GET /stacks once the credentials are valid
    stack_id: str = ""
    gateway_url: str = "https://gateway.stackpath.com"


class SiteSettings(BaseModel):
    # Public URL of the site root, used for full-site recursive purges
    root_url: str | None = None
    # This page and its descendants form the CMS admin tree
    admin_root_page_id: int = 2


class CacheSettings(BaseModel):
    ttl_seconds: int = 3600
    db_path: str = _DEFAULT_DB_PATH
    cleanup_interval_hours: int = 6
    # Keep a failed token exchange cached for the whole TTL window
    cache_failures: bool = True


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    auth_enabled: bool = True
    auth_key: str | None = None


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: EDGEPURGE__SERVER__PORT=9090
        env_prefix="EDGEPURGE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    stackpath: StackPathSettings = StackPathSettings()
    site: SiteSettings = SiteSettings()
    cache: CacheSettings = CacheSettings()
    server: ServerSettings = ServerSettings()
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
        )
