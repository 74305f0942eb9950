"""Settings for the skill hub.

Values are layered: ``skillhub.config.yaml`` in the working directory, then
the same file in the config directory (``$SKILL_HUB_CONFIG_DIR`` or
``~/.skill-hub``), then ``SKILL_HUB_*`` environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_FILENAME = "skillhub.config.yaml"
CONFIG_DIR_ENV = "SKILL_HUB_CONFIG_DIR"
DEFAULT_CONFIG_DIR = "~/.skill-hub"
DATABASE_FILENAME = "skill_hub.db"
GIT_CACHE_DIRNAME = "git-cache"

SyncMode = Literal["auto", "copy", "symlink"]


class SyncSettings(BaseModel):
    default_mode: SyncMode = "auto"
    """Mode used when a sync request does not name one."""

    copy_mode_tools: list[str] = Field(default_factory=lambda: ["cursor"])
    """Tools that do not follow symlinked skill directories and always get a copy."""


class DiscoverySettings(BaseModel):
    max_depth: int = 6


class GitSettings(BaseModel):
    executable: str = "git"
    clone_depth: int = 1
    cache_dir: str | None = None
    # 0 disables reuse; every fetch then clones into a temporary directory.
    cache_ttl_secs: int = Field(60, ge=0, le=3600)
    # 0 disables pruning of stale checkouts.
    cache_cleanup_days: int = Field(30, ge=0, le=3650)


class LoggerSettings(BaseModel):
    level: Literal["debug", "info", "warning", "error"] = "warning"
    show_path: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SKILL_HUB_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    central_repo_path: str | None = None
    """Fallback central repository root when the store has no setting."""

    home_dir: str | None = None
    """Base directory for tool skill directories (defaults to the user home)."""

    database_path: str | None = None

    sync: SyncSettings = Field(default_factory=SyncSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    git: GitSettings = Field(default_factory=GitSettings)
    logger: LoggerSettings = Field(default_factory=LoggerSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values loaded from YAML (passed as init kwargs).
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def resolved_home_dir(self) -> Path:
        if self.home_dir:
            return Path(self.home_dir).expanduser()
        return Path.home()

    def resolved_database_path(self) -> Path:
        if self.database_path:
            return Path(self.database_path).expanduser()
        return get_config_dir() / DATABASE_FILENAME

    def resolved_git_cache_dir(self) -> Path:
        if self.git.cache_dir:
            return Path(self.git.cache_dir).expanduser()
        return get_config_dir() / GIT_CACHE_DIRNAME


_settings: Settings | None = None


def get_config_dir() -> Path:
    return Path(os.environ.get(CONFIG_DIR_ENV) or DEFAULT_CONFIG_DIR).expanduser()


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    with open(path, encoding="utf-8") as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return payload


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(existing, value)
        else:
            merged[key] = value
    return merged


def load_settings(*, cwd: Path | None = None) -> Settings:
    base = cwd or Path.cwd()
    merged: dict[str, Any] = {}
    for candidate in (base / CONFIG_FILENAME, get_config_dir() / CONFIG_FILENAME):
        merged = _deep_merge(merged, _read_yaml(candidate))
    return Settings(**merged)


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def update_global_settings(settings: Settings | None) -> None:
    global _settings
    _settings = settings
