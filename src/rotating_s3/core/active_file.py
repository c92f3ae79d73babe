"""Local append-only file currently accepting writes."""

from __future__ import annotations

import math
from pathlib import Path
from typing import BinaryIO, Optional


class ActiveFile:
    """
    One local file of a rotating stream and its remote destination.

    The handle is opened in append mode on construction. Every write is
    flushed to the OS so that a stat of ``local_path`` reflects it.
    """

    def __init__(
        self,
        name: str,
        local_prefix: str | Path,
        remote_prefix: str,
        created_at: float,
    ) -> None:
        self.name = name
        self.local_path = str(Path(local_prefix) / name)
        self.remote_path = f"{remote_prefix.rstrip('/')}/{name}"
        self.created_at = created_at

        self.observed_size = 0
        self.bytes_written = 0
        self._handle: Optional[BinaryIO] = open(self.local_path, "ab")

    @property
    def is_empty(self) -> bool:
        """True if nothing was written and the last stat saw 0 bytes."""
        return self.bytes_written == 0 and self.observed_size == 0

    @property
    def closed(self) -> bool:
        return self._handle is None

    def age_seconds(self, now: float) -> int:
        return math.floor(now - self.created_at)

    def write(self, data: bytes) -> int:
        if self._handle is None:
            raise ValueError(f"write to closed file {self.local_path}")
        written = self._handle.write(data)
        self._handle.flush()
        self.bytes_written += written
        return written

    def close(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return (
            f"ActiveFile(local_path={self.local_path!r}, "
            f"remote_path={self.remote_path!r}, {state})"
        )
