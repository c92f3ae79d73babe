"""Engine-owned periodic tick."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, Callable, Optional

from rotating_s3.utils.logging import get_logger

logger = get_logger(__name__)


class PeriodicTicker:
    """Awaits ``callback`` every ``interval`` seconds until stopped."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        name: str = "rotating-s3-ticker",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be greater than 0")
        self.interval = interval
        self.callback = callback
        self.name = name
        self.ticks = 0
        self._task: Optional[asyncio.Task[None]] = None
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._stop.clear()
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=self.name
            )

    async def stop(self) -> None:
        if self._task:
            self._stop.set()
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            self._stop.clear()

    async def _run(self) -> None:
        while not self._stop.is_set():
            await asyncio.sleep(self.interval)
            self.ticks += 1
            try:
                await self.callback()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("tick_failed", ticker=self.name, tick=self.ticks, exc_info=exc)
