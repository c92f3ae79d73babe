"""Tests for stream configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from rotating_s3.config.config import ConfigError, StreamConfig
from rotating_s3.utils.naming import TimestampNameGenerator


@pytest.mark.unit
def test_parse_applies_defaults(tmp_path: Path) -> None:
    config = StreamConfig.parse(
        {
            "local_prefix": str(tmp_path),
            "remote_prefix": "s3://bucket/logs/",
            "max_file_size": 10,
            "max_file_age": 5,
        }
    )

    assert config.remote_prefix == "s3://bucket/logs"
    assert config.check_interval == 60.0
    assert isinstance(config.name_generator, TimestampNameGenerator)


@pytest.mark.unit
def test_config_is_immutable(tmp_path: Path) -> None:
    config = StreamConfig(
        local_prefix=str(tmp_path),
        remote_prefix="s3://bucket",
        max_file_size=10,
        max_file_age=5,
    )

    with pytest.raises(ValidationError):
        config.max_file_size = 20  # type: ignore[misc]


@pytest.mark.unit
@pytest.mark.parametrize(
    "data",
    [
        None,
        ["local_prefix"],
        {"local_prefix": "/tmp/x", "remote_prefix": "s3://b", "max_file_size": 1},
        {
            "local_prefix": "/tmp/x",
            "remote_prefix": "s3://b",
            "max_file_size": 1,
            "max_file_age": 1,
            "unknown_option": True,
        },
        {
            "local_prefix": "/tmp/x",
            "remote_prefix": "https://b/logs",
            "max_file_size": 1,
            "max_file_age": 1,
        },
        {
            "local_prefix": "/tmp/x",
            "remote_prefix": "s3://b",
            "max_file_size": 1,
            "max_file_age": 1,
            "check_interval": 0,
        },
    ],
)
def test_parse_rejects_invalid_options(data) -> None:
    with pytest.raises(ConfigError):
        StreamConfig.parse(data)


@pytest.mark.unit
def test_config_error_is_a_value_error() -> None:
    assert issubclass(ConfigError, ValueError)


@pytest.mark.unit
def test_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ROTATING_S3_LOCAL_PREFIX", str(tmp_path))
    monkeypatch.setenv("ROTATING_S3_REMOTE_PREFIX", "s3://env-bucket/app")
    monkeypatch.setenv("ROTATING_S3_MAX_FILE_SIZE", "2048")
    monkeypatch.setenv("ROTATING_S3_MAX_FILE_AGE", "300")
    monkeypatch.setenv("ROTATING_S3_CHECK_INTERVAL", "5")

    config = StreamConfig.from_env(max_file_age=30, check_interval=None)

    assert config.local_prefix == str(tmp_path)
    assert config.remote_prefix == "s3://env-bucket/app"
    assert config.max_file_size == 2048
    assert config.max_file_age == 30
    assert config.check_interval == 5.0


@pytest.mark.unit
def test_from_env_rejects_non_numeric(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ROTATING_S3_LOCAL_PREFIX", str(tmp_path))
    monkeypatch.setenv("ROTATING_S3_REMOTE_PREFIX", "s3://env-bucket/app")
    monkeypatch.setenv("ROTATING_S3_MAX_FILE_SIZE", "big")
    monkeypatch.setenv("ROTATING_S3_MAX_FILE_AGE", "300")

    with pytest.raises(ConfigError):
        StreamConfig.from_env()


@pytest.mark.unit
def test_from_env_missing_values(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "ROTATING_S3_LOCAL_PREFIX",
        "ROTATING_S3_REMOTE_PREFIX",
        "ROTATING_S3_MAX_FILE_SIZE",
        "ROTATING_S3_MAX_FILE_AGE",
    ):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(ConfigError):
        StreamConfig.from_env()


@pytest.mark.unit
def test_from_yaml_nested_and_overrides(tmp_path: Path) -> None:
    path = tmp_path / "stream.yaml"
    path.write_text(
        "stream:\n"
        f"  local_prefix: {tmp_path / 'logs'}\n"
        "  remote_prefix: s3://yaml-bucket/prefix\n"
        "  max_file_size: 100\n"
        "  max_file_age: 10\n"
        "  check_interval: 2.5\n",
        encoding="utf-8",
    )

    config = StreamConfig.from_yaml(path, max_file_size=500, local_prefix=None)

    assert config.local_prefix == str(tmp_path / "logs")
    assert config.remote_prefix == "s3://yaml-bucket/prefix"
    assert config.max_file_size == 500
    assert config.max_file_age == 10
    assert config.check_interval == 2.5


@pytest.mark.unit
def test_from_yaml_top_level(tmp_path: Path) -> None:
    path = tmp_path / "stream.yaml"
    path.write_text(
        "local_prefix: /var/log/app\n"
        "remote_prefix: s3://bucket\n"
        "max_file_size: 1\n"
        "max_file_age: 1\n",
        encoding="utf-8",
    )

    assert StreamConfig.from_yaml(path).local_prefix == "/var/log/app"


@pytest.mark.unit
@pytest.mark.parametrize("content", ["- a\n- b\n", "key: [unclosed\n"])
def test_from_yaml_rejects_bad_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        StreamConfig.from_yaml(path)


@pytest.mark.unit
def test_from_yaml_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        StreamConfig.from_yaml(tmp_path / "missing.yaml")


@pytest.mark.unit
def test_direct_construction_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="remote_prefix"):
        StreamConfig(
            local_prefix=str(tmp_path),
            remote_prefix="bucket/logs",
            max_file_size=10,
            max_file_age=5,
        )
