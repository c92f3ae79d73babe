"""Rotating S3 streams - local append-only logs periodically synced to S3."""

__version__ = "0.1.0"

from .config import ConfigError, StreamConfig  # noqa: E402
from .core import ActiveFile, Event, EventBus, EventLevel  # noqa: E402
from .stream import RotatingS3Stream, RotationReason  # noqa: E402
from .uploader import AwsCliTransport, Boto3Transport, Uploader, UploadResult  # noqa: E402
from .utils import TimestampNameConfig, TimestampNameGenerator  # noqa: E402

__all__ = [
    "RotatingS3Stream",
    "RotationReason",
    "StreamConfig",
    "ConfigError",
    "ActiveFile",
    "Event",
    "EventBus",
    "EventLevel",
    "Uploader",
    "UploadResult",
    "Boto3Transport",
    "AwsCliTransport",
    "TimestampNameGenerator",
    "TimestampNameConfig",
]
