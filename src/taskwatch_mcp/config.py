"""Configuration management for taskwatch."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class TaskwatchSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    task_path: str | None = Field(default=None, validation_alias="TASKWATCH_TASK_PATH")
    taskrc: Path | None = Field(default=None, validation_alias="TASKWATCH_TASKRC")
    taskdata: Path | None = Field(default=None, validation_alias="TASKWATCH_TASKDATA")
    descriptor_file_name: str = Field(
        default=".taskwarrior.json", validation_alias="TASKWATCH_DESCRIPTOR_FILE"
    )
    granularity: float = Field(default=15 * 60.0, validation_alias="TASKWATCH_GRANULARITY")
    single_active: bool = Field(default=False, validation_alias="TASKWATCH_SINGLE_ACTIVE")
    export_filter: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("status:pending",), validation_alias="TASKWATCH_EXPORT_FILTER"
    )
    helper_timeout: float = Field(default=30.0, validation_alias="TASKWATCH_HELPER_TIMEOUT")
    notify_start: bool = Field(default=True, validation_alias="TASKWATCH_NOTIFY_START")
    notify_stop: bool = Field(default=True, validation_alias="TASKWATCH_NOTIFY_STOP")
    notify_error: bool = Field(default=True, validation_alias="TASKWATCH_NOTIFY_ERROR")
    ignored_buffer_types: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("noice", "nofile"), validation_alias="TASKWATCH_IGNORED_BUFFER_TYPES"
    )
    log_level: str = Field(default="INFO", validation_alias="TASKWATCH_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TASKWATCH_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("descriptor_file_name")
    @classmethod
    def _validate_descriptor_file_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized or "/" in normalized:
            raise ValueError("TASKWATCH_DESCRIPTOR_FILE must be a bare file name")
        return normalized

    @field_validator("granularity", "helper_timeout")
    @classmethod
    def _validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("TASKWATCH_GRANULARITY and TASKWATCH_HELPER_TIMEOUT must be > 0")
        return value

    @field_validator("export_filter", mode="before")
    @classmethod
    def _parse_export_filter(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            return tuple(value.split())
        raise ValueError("TASKWATCH_EXPORT_FILTER must be a list or a whitespace-separated string")

    @field_validator("ignored_buffer_types", mode="before")
    @classmethod
    def _parse_ignored_buffer_types(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        raise ValueError(
            "TASKWATCH_IGNORED_BUFFER_TYPES must be a list or a comma-separated string"
        )


@lru_cache(maxsize=1)
def get_settings() -> TaskwatchSettings:
    """Return cached settings instance."""

    settings = TaskwatchSettings()
    if settings.taskrc is not None:
        settings.taskrc = settings.taskrc.expanduser().resolve()
    if settings.taskdata is not None:
        settings.taskdata = settings.taskdata.expanduser().resolve()
    return settings


__all__ = ["TaskwatchSettings", "get_settings"]
