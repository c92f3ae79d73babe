"""Upload of rotated files and reporting of the outcome."""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from rotating_s3.core.events import EventBus
from rotating_s3.monitoring.metrics import UPLOAD_DURATION, UPLOADS
from rotating_s3.uploader.transport import Boto3Transport, Transport
from rotating_s3.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadResult:
    source: str
    destination: str
    code: Optional[int]
    output: Tuple[str, ...] = ()
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.code == 0 and self.error is None


class Uploader:
    """
    Pushes one closed file to its destination, then deletes it locally.

    Transfer output is forwarded line by line: stdout as info events, stderr
    as error events. A failed transfer leaves the local file in place and is
    not retried.
    """

    def __init__(self, transport: Optional[Transport] = None, events: Optional[EventBus] = None) -> None:
        self.transport: Transport = transport or Boto3Transport()
        self.events = events or EventBus()

    async def upload(self, source: str, destination: str) -> UploadResult:
        output: list[str] = []

        def on_output(stream: str, line: str) -> None:
            output.append(line)
            if stream == "stderr":
                self.events.error(line, source=source, destination=destination)
            else:
                self.events.info(line, source=source, destination=destination)

        start = time.perf_counter()
        code: Optional[int] = None
        error: Optional[BaseException] = None
        try:
            code = await self.transport.transfer(source, destination, on_output)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = exc

        result = UploadResult(
            source=source,
            destination=destination,
            code=code,
            output=tuple(output),
            error=error,
        )
        outcome = "success" if result.ok else "failure"
        UPLOADS.labels(outcome=outcome).inc()
        UPLOAD_DURATION.labels(outcome=outcome).observe(time.perf_counter() - start)

        if result.ok:
            logger.info("upload_succeeded", source=source, destination=destination)
            self.events.info(
                "Rotated and synced stream to s3",
                source=source,
                destination=destination,
            )
            await asyncio.to_thread(delete_local_file, source)
        else:
            logger.error(
                "upload_failed",
                source=source,
                destination=destination,
                code=code,
                exc_info=error,
            )
            self.events.error(
                "upload failed",
                source=source,
                destination=destination,
                code=code,
                error=error,
            )
        return result


def delete_local_file(path: str) -> bool:
    """Delete a local file; failures are logged, never raised."""
    try:
        os.unlink(path)
    except OSError as exc:
        logger.warning("local_delete_failed", path=path, exc_info=exc)
        return False
    return True


__all__ = ["Uploader", "UploadResult", "delete_local_file"]
