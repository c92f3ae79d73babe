"""Prometheus metrics for rotating streams."""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Counters
ROTATIONS = Counter(
    "rotating_s3_rotations_total", "Number of stream rotations", ["reason"]
)
UPLOADS = Counter(
    "rotating_s3_uploads_total", "Finished uploads of rotated files", ["outcome"]
)
BYTES_WRITTEN = Counter(
    "rotating_s3_bytes_written_total", "Bytes appended to local stream files"
)
STAT_FAILURES = Counter(
    "rotating_s3_stat_failures_total",
    "Size/age checks that failed to stat the active file",
)
WRITE_FAILURES = Counter(
    "rotating_s3_write_failures_total",
    "Writes rejected by the active file handle",
)

# Gauges
UPLOADS_IN_FLIGHT = Gauge(
    "rotating_s3_uploads_in_flight",
    "Uploads dispatched but not yet finished",
)

UPLOAD_DURATION = Histogram(
    "rotating_s3_upload_duration_seconds",
    "Duration of rotated file uploads",
    ["outcome"],
)

__all__ = [
    "ROTATIONS",
    "UPLOADS",
    "BYTES_WRITTEN",
    "STAT_FAILURES",
    "WRITE_FAILURES",
    "UPLOADS_IN_FLIGHT",
    "UPLOAD_DURATION",
    "CONTENT_TYPE_LATEST",
    "generate_latest",
]
