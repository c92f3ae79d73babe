"""Stream configuration management."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Mapping
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from rotating_s3.utils.naming import TimestampNameGenerator


class ConfigError(ValueError):
    """Raised when stream options are missing or invalid."""


class StreamConfig(BaseModel):
    """Options of a single rotating stream. Immutable once built."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    local_prefix: str = Field(
        ...,
        min_length=1,
        description="Local directory holding the active and rotated files",
    )
    remote_prefix: str = Field(
        ...,
        description="Upload destination in the form s3://<bucket>[/<prefix>]",
    )
    max_file_size: int = Field(
        ...,
        gt=0,
        strict=True,
        description="Rotate once the active file grows beyond this (bytes)",
    )
    max_file_age: int = Field(
        ...,
        gt=0,
        strict=True,
        description="Rotate once the active file is older than this (seconds)",
    )
    name_generator: Callable[[], str] = Field(
        default_factory=TimestampNameGenerator,
        description="No-argument callable returning the next file name",
    )
    check_interval: float = Field(
        60.0,
        gt=0,
        description="Seconds between size/age checks",
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    @field_validator("remote_prefix")
    @classmethod
    def _validate_remote_prefix(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme != "s3" or not parsed.netloc:
            raise ValueError(
                "remote_prefix must be a valid s3 prefix in the form: "
                "s3://<bucket><prefix>"
            )
        return value.rstrip("/")

    @classmethod
    def parse(cls, data: Any) -> "StreamConfig":
        """Validate a mapping of options, raising ConfigError on failure."""
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            raise ConfigError(
                f"stream options must be a mapping, got {type(data).__name__}"
            )
        return cls(**data)

    @classmethod
    def from_env(cls, **overrides: Any) -> "StreamConfig":
        data: dict[str, Any] = {}
        local_prefix = os.getenv("ROTATING_S3_LOCAL_PREFIX")
        if local_prefix:
            data["local_prefix"] = local_prefix
        remote_prefix = os.getenv("ROTATING_S3_REMOTE_PREFIX")
        if remote_prefix:
            data["remote_prefix"] = remote_prefix

        try:
            for key, env_name, cast in (
                ("max_file_size", "ROTATING_S3_MAX_FILE_SIZE", int),
                ("max_file_age", "ROTATING_S3_MAX_FILE_AGE", int),
                ("check_interval", "ROTATING_S3_CHECK_INTERVAL", float),
            ):
                raw = os.getenv(env_name)
                if raw:
                    data[key] = cast(raw)
        except ValueError as exc:
            raise ConfigError(f"invalid numeric environment value: {exc}") from exc

        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.parse(data)

    @classmethod
    def from_yaml(cls, path: str | Path, **overrides: Any) -> "StreamConfig":
        """
        Load options from a YAML file.

        The options may sit at the top level or under a ``stream:`` key.
        Non-None ``overrides`` win over file values.
        """
        try:
            with open(path, "r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot load config file {path}: {exc}") from exc

        if isinstance(raw, Mapping) and "stream" in raw:
            raw = raw["stream"]
        if not isinstance(raw, Mapping):
            raise ConfigError(f"config file {path} must contain a mapping")

        data = dict(raw)
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.parse(data)


__all__ = ["StreamConfig", "ConfigError"]
