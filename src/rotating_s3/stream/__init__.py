"""Rotating stream engine."""

from .engine import RotatingS3Stream, RotationReason

__all__ = ["RotatingS3Stream", "RotationReason"]
