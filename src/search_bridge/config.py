"""Centralized configuration for search-bridge using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``XB_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="XB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    host: str = Field(default="127.0.0.1", description="Interface to bind when not socket-activated")
    port: int = Field(default=3004, ge=1, le=65535, description="TCP port to bind when not socket-activated")
    cache_dir: Path = Field(
        default=Path("/var/cache/search-bridge"),
        description="Directory holding the databases.json catalog",
    )

    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")
    access_log: bool = Field(default=False, description="Keep uvicorn access logs at INFO")
    logger_levels: dict[str, str] = Field(
        default_factory=dict,
        description="Per-logger level overrides, e.g. {\"search_bridge.registry\": \"DEBUG\"}",
    )

    service_name: str = Field(default="search-bridge", description="Service name reported in traces")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return normalized

    @field_validator("logger_levels")
    @classmethod
    def _validate_logger_levels(cls, value: dict[str, str]) -> dict[str, str]:
        invalid = {name: level for name, level in value.items() if level.upper() not in _LOG_LEVELS}
        if invalid:
            raise ValueError(f"Unknown log levels: {invalid}")
        return {name: level.upper() for name, level in value.items()}
