"""
Utility helpers for rotating streams.
"""

from .naming import TimestampNameConfig, TimestampNameGenerator

__all__ = ["TimestampNameGenerator", "TimestampNameConfig"]
