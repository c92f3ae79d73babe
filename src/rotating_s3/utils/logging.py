from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from typing import IO, Any, Iterator, Optional, cast

import structlog
from structlog.dev import ConsoleRenderer
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor, WrappedLogger

try:
    from rotating_s3 import __version__ as PACKAGE_VERSION
except Exception:
    PACKAGE_VERSION = os.getenv("APP_VERSION", "unknown")

SERVICE_NAME = "rotating-s3"


def _coerce_level(level: str | int) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if isinstance(resolved, str):
            raise ValueError(f"Invalid log level: {level}")
        return int(resolved)
    return int(level)


def render_exceptions(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Replace exception values (e.g. an event's ``error``) with their repr."""
    for key, value in event_dict.items():
        if key != "exc_info" and isinstance(value, BaseException):
            event_dict[key] = repr(value)
    return event_dict


def configure_logging(
    level: str | int = "INFO",
    json_output: bool = True,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    Route structlog and stdlib logging through one handler.

    Lines go to ``stream``, stderr by default: stdout belongs to the data
    piped through the process.
    """
    renderer = structlog.processors.JSONRenderer() if json_output else ConsoleRenderer()
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        render_exceptions,
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared)
    )
    logging.basicConfig(level=_coerce_level(level), handlers=[handler], force=True)
    # botocore is chatty at DEBUG and INFO
    logging.getLogger("botocore").setLevel(max(_coerce_level(level), logging.WARNING))


def get_logger(name: str) -> BoundLogger:
    """Return a logger bound with service name and package version."""
    return cast(
        BoundLogger,
        structlog.get_logger(name).bind(
            service_name=os.getenv("SERVICE_NAME", SERVICE_NAME),
            version=os.getenv("APP_VERSION", PACKAGE_VERSION),
        ),
    )


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind stream fields (source, destination, ...) to every log line in the block."""
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
