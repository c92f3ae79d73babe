"""
Monitoring utilities for rotating streams.
"""

from rotating_s3.monitoring.metrics import (
    BYTES_WRITTEN,
    CONTENT_TYPE_LATEST,
    ROTATIONS,
    UPLOADS,
    UPLOADS_IN_FLIGHT,
    generate_latest,
)

__all__ = [
    "ROTATIONS",
    "UPLOADS",
    "UPLOADS_IN_FLIGHT",
    "BYTES_WRITTEN",
    "CONTENT_TYPE_LATEST",
    "generate_latest",
]
