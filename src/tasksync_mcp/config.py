"""Configuration management for the task sync service."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class TaskSyncSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    tracker_base_url: str = Field(
        default="https://app.asana.com/api/1.0", validation_alias="TRACKER_BASE_URL"
    )
    tracker_token_url: str = Field(
        default="https://app.asana.com/-/oauth_token", validation_alias="TRACKER_TOKEN_URL"
    )
    tracker_client_id: str | None = Field(default=None, validation_alias="TRACKER_CLIENT_ID")
    tracker_client_secret: str | None = Field(
        default=None, validation_alias="TRACKER_CLIENT_SECRET"
    )
    page_size: int = Field(default=100, validation_alias="TRACKER_PAGE_SIZE")
    request_timeout: float = Field(default=30.0, validation_alias="TRACKER_TIMEOUT_SECONDS")
    token_freshness_seconds: int = Field(
        default=3600, validation_alias="TASKSYNC_TOKEN_FRESHNESS_SECONDS"
    )
    sync_all_delay_seconds: float = Field(
        default=1.0, validation_alias="TASKSYNC_SYNC_ALL_DELAY_SECONDS"
    )
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CHROMA_PERSIST_PATH"
    )
    # Parsed from an os.pathsep-separated string, not JSON.
    process_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(Path("processes"),), validation_alias="TASKSYNC_PROCESS_PATHS"
    )
    log_level: str = Field(default="INFO", validation_alias="TASKSYNC_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TASKSYNC_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("process_paths", mode="before")
    @classmethod
    def _parse_process_paths(cls, value):
        if value is None or value == "":
            return (Path("processes"),)
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts) or (Path("processes"),)
        raise TypeError("TASKSYNC_PROCESS_PATHS must be a list of paths or a path-separated string")

    @field_validator("page_size")
    @classmethod
    def _validate_page_size(cls, value: int) -> int:
        # The tracker rejects limits above 100.
        if not 1 <= value <= 100:
            raise ValueError("TRACKER_PAGE_SIZE must be between 1 and 100")
        return value

    @field_validator("token_freshness_seconds")
    @classmethod
    def _validate_freshness(cls, value: int) -> int:
        if value < 1:
            raise ValueError("TASKSYNC_TOKEN_FRESHNESS_SECONDS must be >= 1")
        return value

    @field_validator("sync_all_delay_seconds")
    @classmethod
    def _validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("TASKSYNC_SYNC_ALL_DELAY_SECONDS must be >= 0")
        return value


@lru_cache(maxsize=1)
def get_settings() -> TaskSyncSettings:
    """Return cached settings instance."""

    settings = TaskSyncSettings()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    settings.process_paths = tuple(path.expanduser().resolve() for path in settings.process_paths)
    return settings


__all__ = ["TaskSyncSettings", "get_settings"]
