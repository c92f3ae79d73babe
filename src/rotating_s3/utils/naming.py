# naming.py
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional


@dataclass
class TimestampNameConfig:
    prefix: str = ""  # optional, e.g. "app" -> "app-2024-05-01T12:00:00.000+00:00"
    suffix: str = ""  # optional extension, e.g. ".log"
    utc: bool = False  # local time with offset by default


class TimestampNameGenerator:
    """
    Generator of log file names in the format:
        [<prefix>-]<ISO-8601 timestamp, ms precision, with offset>[.<seq>]<suffix>

    Two calls within the same millisecond get an increasing ``.<seq>``
    suffix, so consecutive rotations never reuse a name. If the clock goes
    backwards the last timestamp is reused and the sequence keeps counting.
    """

    def __init__(
        self,
        config: TimestampNameConfig | None = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or TimestampNameConfig()
        self._validate_affix(self.config.prefix, "prefix")
        self._validate_affix(self.config.suffix, "suffix")
        self._clock = clock or time.time

        self._lock = threading.Lock()
        self._last_ms = -1
        self._seq = 0

    def _epoch_ms(self) -> int:
        return int(self._clock() * 1000)

    def _next_stamp(self) -> tuple[int, int]:
        with self._lock:
            now_ms = self._epoch_ms()
            if now_ms < self._last_ms:
                now_ms = self._last_ms

            if now_ms == self._last_ms:
                self._seq += 1
            else:
                self._seq = 0

            self._last_ms = now_ms
            return now_ms, self._seq

    def _format(self, epoch_ms: int) -> str:
        tz = timezone.utc if self.config.utc else None
        moment = datetime.fromtimestamp(epoch_ms / 1000, tz=tz)
        if tz is None:
            moment = moment.astimezone()
        return moment.isoformat(timespec="milliseconds")

    def next_name(self) -> str:
        epoch_ms, seq = self._next_stamp()
        name = self._format(epoch_ms)
        if self.config.prefix:
            name = f"{self.config.prefix}-{name}"
        if seq:
            name = f"{name}.{seq}"
        return name + self.config.suffix

    def __call__(self) -> str:
        return self.next_name()

    @staticmethod
    def _validate_affix(value: str, field: str) -> None:
        """
        Prefix/suffix end up in local paths and S3 keys, so no separators.
        """
        if "/" in value or "\\" in value:
            raise ValueError(f"{field} must not contain path separators")
        if not value.isascii():
            raise ValueError(f"{field} must contain only ASCII characters")
