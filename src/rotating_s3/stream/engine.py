"""Rotation engine: local stream that is periodically synced to S3."""

from __future__ import annotations

import asyncio
import functools
import os
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Set, Union

from rotating_s3.config.config import StreamConfig
from rotating_s3.core.active_file import ActiveFile
from rotating_s3.core.events import EventBus, EventLevel, Listener
from rotating_s3.core.scheduler import PeriodicTicker
from rotating_s3.monitoring.metrics import (
    BYTES_WRITTEN,
    ROTATIONS,
    STAT_FAILURES,
    UPLOADS_IN_FLIGHT,
    WRITE_FAILURES,
)
from rotating_s3.uploader.transport import Transport
from rotating_s3.uploader.uploader import Uploader, UploadResult, delete_local_file
from rotating_s3.utils.logging import get_logger, log_context

logger = get_logger(__name__)


class RotationReason(str, Enum):
    """Why a stream was rotated."""

    MAX_AGE = "max age"
    MAX_SIZE = "max size"
    FLUSH = "external flush request"


class RotatingS3Stream:
    """
    Appends writes to a local file and rotates it to S3.

    Exactly one ActiveFile accepts writes at any time. Every
    ``check_interval`` seconds the file is stat'ed; once it is older than
    ``max_file_age`` or larger than ``max_file_size`` it is rotated: a new
    file takes over the writes and the old one is uploaded in a background
    task (or deleted right away if empty). ``flush()`` rotates on demand.

    All state changes happen on the event loop the stream was created on;
    ``write``, ``rotate`` and ``flush`` never await, so the file swap is
    atomic for every caller on that loop. After construction nothing is
    raised for I/O problems; they are reported as ``error`` events.
    """

    def __init__(
        self,
        config: Union[StreamConfig, Mapping[str, Any]],
        *,
        transport: Optional[Transport] = None,
        clock: Callable[[], float] = time.time,
        autostart: bool = True,
    ) -> None:
        if isinstance(config, StreamConfig):
            self.config = config
        else:
            self.config = StreamConfig.parse(config)
        # Raises RuntimeError outside of a running loop, before any side effect.
        self._loop = asyncio.get_running_loop()

        self._clock = clock
        self.events = EventBus()
        self.uploader = Uploader(transport, self.events)
        self._uploads: Set[asyncio.Task[UploadResult]] = set()
        self._closed = False

        Path(self.config.local_prefix).mkdir(parents=True, exist_ok=True)
        self._active = self._open_file(self._next_name())

        self._ticker = PeriodicTicker(
            self.config.check_interval,
            self.check_and_rotate,
            name=f"rotating-s3:{self.config.local_prefix}",
        )
        if autostart:
            self._ticker.start()

    # ------------------------------------------------------------------ #
    # Properties

    @property
    def active(self) -> ActiveFile:
        return self._active

    @property
    def source(self) -> str:
        return self._active.local_path

    @property
    def destination(self) -> str:
        return self._active.remote_path

    @property
    def pending_uploads(self) -> int:
        return len(self._uploads)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ticker(self) -> PeriodicTicker:
        return self._ticker

    # ------------------------------------------------------------------ #
    # Events

    def subscribe(self, level: EventLevel | str, listener: Listener) -> Callable[[], None]:
        """Attach an ``info`` or ``error`` listener; returns the detach callable."""
        return self.events.subscribe(level, listener)

    def unsubscribe(self, level: EventLevel | str, listener: Listener) -> None:
        self.events.unsubscribe(level, listener)

    # ------------------------------------------------------------------ #
    # Lifecycle

    def _next_name(self) -> str:
        return str(self.config.name_generator())

    def _open_file(self, name: str) -> ActiveFile:
        active = ActiveFile(
            name=name,
            local_prefix=self.config.local_prefix,
            remote_prefix=self.config.remote_prefix,
            created_at=self._clock(),
        )
        logger.info(
            "write_stream_created",
            source=active.local_path,
            destination=active.remote_path,
        )
        # Deferred so listeners attached right after construction see it.
        self._loop.call_soon(
            functools.partial(
                self.events.info,
                "Created new write stream",
                source=active.local_path,
                destination=active.remote_path,
            )
        )
        return active

    def start(self) -> None:
        """Start periodic size/age checks (done by the constructor by default)."""
        if self._closed:
            raise RuntimeError("stream is closed")
        self._ticker.start()

    async def stop(self) -> None:
        """Stop periodic checks; writes and flushes keep working."""
        await self._ticker.stop()

    async def close(
        self, wait_for_uploads: bool = True, timeout: Optional[float] = None
    ) -> bool:
        """
        Stop the ticker and close the active file.

        The active file is not rotated (call ``flush()`` first for that);
        if nothing was ever written to it, it is removed. With
        ``wait_for_uploads`` in-flight uploads are awaited, up to
        ``timeout`` seconds. Returns False if uploads were left running.
        """
        if self._closed:
            return not self._uploads
        self._closed = True
        await self._ticker.stop()

        active = self._active
        active.close()
        if active.bytes_written == 0 and _size_or_none(active.local_path) == 0:
            delete_local_file(active.local_path)

        logger.info(
            "stream_closed",
            source=active.local_path,
            pending_uploads=len(self._uploads),
        )
        if wait_for_uploads:
            return await self.wait_for_uploads(timeout)
        return not self._uploads

    async def wait_for_uploads(self, timeout: Optional[float] = None) -> bool:
        """Wait for uploads dispatched so far; False if some are still running."""
        pending = set(self._uploads)
        if not pending:
            return True
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning(
                "uploads_still_in_flight",
                count=len(still_running),
                timeout=timeout,
            )
            return False
        return True

    async def __aenter__(self) -> "RotatingS3Stream":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Core operations

    def write(self, data: Union[str, bytes, bytearray, memoryview]) -> None:
        """
        Append ``data`` to the active file.

        I/O failures become ``write failed`` error events. Data that is
        neither ``str`` nor bytes-like is a caller bug and raises TypeError.
        """
        if isinstance(data, str):
            payload: bytes | bytearray | memoryview = data.encode("utf-8")
        elif isinstance(data, (bytes, bytearray, memoryview)):
            payload = data
        else:
            raise TypeError(
                f"write() expects str or bytes-like data, got {type(data).__name__}"
            )

        active = self._active
        try:
            written = active.write(payload)
        except (OSError, ValueError) as exc:
            WRITE_FAILURES.inc()
            logger.error("write_failed", source=active.local_path, exc_info=exc)
            self.events.error("write failed", source=active.local_path, error=exc)
            return
        BYTES_WRITTEN.inc(written)

    async def check_and_rotate(self) -> Optional[RotationReason]:
        """
        Rotate if the active file is too old or too large.

        Returns the reason of the rotation that happened, if any.
        """
        if self._closed:
            return None

        active = self._active
        try:
            status = await asyncio.to_thread(os.stat, active.local_path)
        except OSError as exc:
            STAT_FAILURES.inc()
            logger.error("stat_failed", source=active.local_path, exc_info=exc)
            self.events.error("stat failed", source=active.local_path, error=exc)
            return None

        if active is not self._active:
            # Rotated while the stat was running; the result is stale.
            logger.debug("stale_stat_discarded", source=active.local_path)
            return None

        age_seconds = active.age_seconds(self._clock())
        active.observed_size = status.st_size

        if age_seconds > self.config.max_file_age:
            reason = RotationReason.MAX_AGE
        elif status.st_size > self.config.max_file_size:
            reason = RotationReason.MAX_SIZE
        else:
            return None

        self.rotate(reason)
        return reason

    def rotate(self, reason: RotationReason | str) -> Optional[ActiveFile]:
        """
        Swap in a new active file and dispatch the old one.

        Returns the new ActiveFile, or None if no rotation took place.
        """
        reason = RotationReason(reason)
        old = self._active
        if self._closed:
            self.events.error(
                "rotation requested on closed stream",
                source=old.local_path,
                reason=reason.value,
            )
            return None

        with log_context(source=old.local_path, destination=old.remote_path):
            logger.info("rotating_stream", reason=reason.value)
            self.events.info(
                "Rotating stream",
                source=old.local_path,
                destination=old.remote_path,
                reason=reason.value,
            )

            try:
                name = self._next_name()
                if str(Path(self.config.local_prefix) / name) == old.local_path:
                    raise ValueError(f"name generator repeated the active name {name!r}")
                new = self._open_file(name)
            except Exception as exc:
                logger.error("rotation_failed", reason=reason.value, exc_info=exc)
                self.events.error(
                    "rotation failed",
                    source=old.local_path,
                    destination=old.remote_path,
                    reason=reason.value,
                    error=exc,
                )
                return None

            self._active = new
            old.close()
            ROTATIONS.labels(reason=reason.name.lower()).inc()

            if old.is_empty:
                logger.info("skipping_empty_upload")
                self.events.info(
                    "Rotating empty local stream without upload",
                    source=old.local_path,
                )
                delete_local_file(old.local_path)
            else:
                self._dispatch_upload(old)
        return new

    def flush(self) -> Optional[ActiveFile]:
        """Rotate right away, regardless of size and age."""
        return self.rotate(RotationReason.FLUSH)

    # ------------------------------------------------------------------ #
    # Uploads

    def _dispatch_upload(self, rotated: ActiveFile) -> None:
        task = self._loop.create_task(
            self.uploader.upload(rotated.local_path, rotated.remote_path),
            name=f"upload:{rotated.name}",
        )
        self._uploads.add(task)
        UPLOADS_IN_FLIGHT.inc()
        task.add_done_callback(self._upload_finished)

    def _upload_finished(self, task: "asyncio.Task[UploadResult]") -> None:
        self._uploads.discard(task)
        UPLOADS_IN_FLIGHT.dec()
        if task.cancelled():
            logger.warning("upload_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("upload_task_crashed", task=task.get_name(), exc_info=exc)


def _size_or_none(path: str) -> Optional[int]:
    try:
        return os.path.getsize(path)
    except OSError:
        return None


__all__ = ["RotatingS3Stream", "RotationReason"]
