"""Signal helpers for graceful shutdown and on-demand flushes."""

from __future__ import annotations

import signal
from typing import Any, Callable

from rotating_s3.utils.logging import get_logger

logger = get_logger(__name__)


def _make_handler(
    callback: Callable[[], None], action: str
) -> Callable[[int, Any], None]:
    def handler(signum: int, _frame: Any) -> None:
        logger.info("received_signal", signal=signum, action=action)
        callback()

    return handler


def setup_signal_handlers(on_stop: Any) -> None:
    """
    Register SIGINT/SIGTERM handlers.

    The `on_stop` object can provide a `stop`, `shutdown` or `close` method;
    otherwise the handler only logs the signal. The method runs inside the
    signal handler, so it should only hand work over to the event loop
    (e.g. via ``loop.call_soon_threadsafe``).
    """

    def _stop() -> None:
        for method_name in ("stop", "shutdown", "close"):
            method = getattr(on_stop, method_name, None)
            if callable(method):
                method()
                break

    handler = _make_handler(_stop, "stop")
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, handler)


def setup_flush_handler(on_flush: Callable[[], None]) -> bool:
    """
    Register a SIGUSR1 handler that forces a rotation.

    Returns False on platforms without SIGUSR1.
    """
    sig = getattr(signal, "SIGUSR1", None)
    if sig is None:
        return False
    signal.signal(sig, _make_handler(on_flush, "flush"))
    return True
