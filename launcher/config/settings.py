"""Launcher configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import ClassVar, Literal, Optional

from pydantic import AliasChoices, Field, PositiveFloat, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def default_data_dir() -> Path:
    return Path.home() / ".codexmonitor-web"


def default_tmp_dir() -> Path:
    return Path.home() / ".codexmonitor" / "tmp"


def default_user_config_path() -> Path:
    return Path.home() / ".miu-codex-monitor.json"


class LauncherSettings(BaseSettings):
    """Validated settings for the backend acquirer and process supervisor."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="CODEX_MONITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Backend acquisition
    backend_path: Optional[str] = Field(
        default=None,
        description="Use this backend executable instead of resolving one.",
    )
    backend_url: Optional[str] = Field(
        default=None,
        description="Direct download URL for the backend binary.",
    )
    backend_release_base: Optional[str] = Field(
        default=None,
        description="Release download base; derived from the project repository URL when unset.",
    )
    backend_release_tag: Optional[str] = Field(
        default=None,
        description="Release tag to download from; defaults to v<version>.",
    )
    backend_asset: Optional[str] = Field(
        default=None,
        description="Release asset name override.",
    )
    backend_cache_dir: Optional[Path] = Field(
        default=None,
        description="Directory holding downloaded backend binaries.",
    )
    skip_backend_download: bool = Field(
        default=False,
        description="Never download the backend (CODEX_MONITOR_SKIP_BACKEND_DOWNLOAD=1).",
    )
    backend_install_strict: bool = Field(
        default=False,
        description="Treat install-step download problems as errors.",
    )
    download_timeout_seconds: PositiveFloat = Field(
        default=60.0,
        description="Socket timeout applied to backend downloads.",
    )

    # Runtime
    tmpdir: Optional[Path] = Field(
        default=None,
        description="Preferred temporary directory handed to the backend.",
    )
    user_config_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("CODEX_MONITOR_CONFIG", "MIU_CODEX_MONITOR_CONFIG"),
        description="User config file (JSON or YAML).",
    )
    project_root: Path = Field(
        default_factory=_default_project_root,
        description="Checkout root used for the cargo fallback and the dist/ default.",
    )
    dist_dir: Optional[Path] = Field(
        default=None,
        description="Prebuilt frontend assets; defaults to <project_root>/dist.",
    )

    # Readiness + shutdown
    ready_timeout_seconds: PositiveFloat = Field(
        default=180.0,
        description="How long to wait for the backend port to accept connections.",
    )
    ready_interval_seconds: PositiveFloat = Field(
        default=0.3,
        description="Delay between readiness connection attempts.",
    )
    ready_connect_timeout_seconds: PositiveFloat = Field(
        default=1.0,
        description="Per-attempt connect timeout for the readiness probe.",
    )
    shutdown_grace_seconds: PositiveFloat = Field(
        default=5.0,
        description="Time children get to exit after a termination signal before being killed.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for launcher output.",
    )

    @field_validator(
        "backend_path",
        "backend_url",
        "backend_release_base",
        "backend_release_tag",
        "backend_asset",
        "backend_cache_dir",
        "tmpdir",
        "user_config_path",
        "dist_dir",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    def resolved_dist_dir(self) -> Path:
        return self.dist_dir or self.project_root / "dist"

    def resolved_cache_dir(self) -> Path:
        return self.backend_cache_dir or default_data_dir()

    def resolved_user_config_path(self) -> Path:
        return self.user_config_path or default_user_config_path()


@lru_cache()
def get_launcher_settings() -> LauncherSettings:
    """Return memoized launcher settings."""

    return LauncherSettings()
