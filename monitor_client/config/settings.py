"""Session client configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import ClassVar, Literal

from pydantic import Field, PositiveFloat, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Validated settings for the RPC session client."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="CODEX_MONITOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Target overrides (environment tier of the target resolver)
    api_base: str | None = Field(
        default=None,
        description="Backend HTTP base URL, e.g. http://127.0.0.1:4732.",
    )
    rpc_url: str | None = Field(
        default=None,
        description="Backend RPC WebSocket URL; derived from api_base when unset.",
    )
    token: str | None = Field(
        default=None,
        description="Shared secret appended to backend URLs as ?token=.",
        repr=False,
    )

    # Call + reconnect policy
    call_timeout_seconds: PositiveFloat = Field(
        default=30.0,
        description="Default per-call reply budget.",
    )
    reconnect_delay_seconds: PositiveFloat = Field(
        default=1.2,
        description="Fixed delay before a reconnection attempt after an unexpected close.",
    )
    connect_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Opening handshake budget for a single connection attempt.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for client-side tooling.",
    )

    @field_validator("api_base", "rpc_url", "token", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value


@lru_cache()
def get_settings() -> ClientSettings:
    """Return memoized client settings."""

    return ClientSettings()
