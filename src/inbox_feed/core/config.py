"""Application configuration models and loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator


class ImapSettings(BaseModel):
    """Settings controlling IMAP connectivity."""

    host: str = Field(default="localhost", description="IMAP hostname")
    port: int = Field(default=993, description="IMAP port, typically 993 for SSL")
    username: str | None = Field(default=None, description="Account username")
    password: str | None = Field(default=None, description="Account password")
    use_ssl: bool = Field(default=True, description="Whether to enforce SSL")
    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Socket timeout for IMAP calls; unset means wait forever",
    )


class ServerSettings(BaseModel):
    """Settings for the HTTP feed endpoint."""

    api_key: str = Field(default="", description="Key callers must present")
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8080, description="Bind port")
    cache_ttl_seconds: float = Field(
        default=300, gt=0, description="Lifetime of a cached feed document"
    )

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_api_key(cls, value: object) -> object:
        """Treat an unset key as empty so requests are rejected, not the config."""
        return "" if value is None else value


class FetchSettings(BaseModel):
    """Settings bounding a single folder fetch."""

    window_size: int = Field(
        default=25, ge=1, description="Most recent messages included in a feed"
    )
    buffer_size: int = Field(
        default=10, ge=1, description="Records buffered between receive and decode"
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    imap: ImapSettings = Field(default_factory=ImapSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    feeds: dict[str, str] = Field(
        default_factory=dict, description="Feed name to mailbox folder mapping"
    )


ENV_PREFIX = "INBOX_FEED_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    segments = [segment for segment in trimmed.split("__") if segment]
    if not segments:
        return []
    # Feed names are user facing; keep their case but lower the section names.
    if segments[0].lower() == "feeds":
        return ["feeds", *segments[1:]]
    return [segment.lower() for segment in segments]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path or path == ["feeds"]:
            continue
        normalized_value: Any = value
        if isinstance(value, str) and value == "":
            normalized_value = None
        elif isinstance(value, str):
            lowercase_value = value.lower()
            if lowercase_value == "true":
                normalized_value = True
            elif lowercase_value == "false":
                normalized_value = False
        _merge_into_tree(collected, path, normalized_value)

    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides."""
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "FetchSettings",
    "ImapSettings",
    "LoggingSettings",
    "ServerSettings",
    "load_app_settings",
]
