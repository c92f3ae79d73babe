"""Command line entry point: pipe stdin into a rotating S3 stream."""

from __future__ import annotations

import asyncio
import json
import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, BinaryIO, Optional

import click

from rotating_s3.config.config import ConfigError, StreamConfig
from rotating_s3.core.events import Event, EventLevel
from rotating_s3.monitoring.metrics import CONTENT_TYPE_LATEST, generate_latest
from rotating_s3.stream.engine import RotatingS3Stream
from rotating_s3.uploader.transport import AwsCliTransport, Boto3Transport, Transport
from rotating_s3.utils.logging import configure_logging, get_logger
from rotating_s3.utils.signals import setup_flush_handler, setup_signal_handlers

logger = get_logger(__name__)


def _build_handler(stream: RotatingS3Stream, start_time: float):
    """Create HTTP handler exposing health and Prometheus metrics."""

    class StreamHandler(BaseHTTPRequestHandler):
        def _write_json(self, payload: dict, status: int = 200) -> None:
            body = json.dumps(payload).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(body)

        def do_GET(self):  # noqa: N802
            if self.path in ("/health", "/health/live"):
                uptime = int(time.time() - start_time)
                self._write_json({"status": "ok", "uptime_seconds": uptime})
                return

            if self.path == "/health/ready":
                status = "stopping" if stream.closed else "ok"
                code = 503 if stream.closed else 200
                self._write_json(
                    {
                        "status": status,
                        "source": stream.source,
                        "pending_uploads": stream.pending_uploads,
                    },
                    status=code,
                )
                return

            if self.path == "/metrics":
                output = generate_latest()
                self.send_response(200)
                self.send_header("Content-Type", CONTENT_TYPE_LATEST)
                self.send_header("Content-Length", str(len(output)))
                self.end_headers()
                self.wfile.write(output)
                return

            self.send_response(404)
            self.end_headers()

        def log_message(self, _format: str, *_args):  # noqa: D401, ANN001
            """Silence default HTTP request logging."""
            return

    return StreamHandler


def _start_http_server(stream: RotatingS3Stream, port: int) -> ThreadingHTTPServer:
    handler = _build_handler(stream, time.time())
    server = ThreadingHTTPServer(("", port), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


def _log_event(event: Event) -> None:
    fields: dict[str, Any] = event.as_dict()
    fields.pop("level")
    message = fields.pop("message")
    if event.level is EventLevel.ERROR:
        logger.error("stream_event", event_message=message, **fields)
    else:
        logger.info("stream_event", event_message=message, **fields)


def _start_reader(
    source: BinaryIO, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Optional[bytes]]"
) -> threading.Thread:
    """Feed lines of ``source`` into ``queue``; None marks end of input."""

    def _put(item: Optional[bytes]) -> bool:
        try:
            loop.call_soon_threadsafe(queue.put_nowait, item)
        except RuntimeError:
            # Loop already closed; nothing left to feed.
            return False
        return True

    def _run() -> None:
        try:
            for line in iter(source.readline, b""):
                if not _put(line):
                    return
        finally:
            _put(None)

    thread = threading.Thread(target=_run, name="rotating-s3-stdin", daemon=True)
    thread.start()
    return thread


class _Stopper:
    def __init__(self, loop: asyncio.AbstractEventLoop, queue: "asyncio.Queue[Optional[bytes]]") -> None:
        self._loop = loop
        self._queue = queue

    def stop(self) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, None)


async def run_pipe(
    config: StreamConfig,
    transport: Optional[Transport] = None,
    source: Optional[BinaryIO] = None,
    metrics_port: Optional[int] = None,
    install_signal_handlers: bool = True,
    upload_timeout: Optional[float] = None,
) -> bool:
    """
    Write every line of ``source`` (stdin by default) to a rotating stream.

    End of input, SIGINT or SIGTERM flush the stream and wait for uploads.
    SIGUSR1 forces a rotation. Returns False if uploads were still running
    when ``upload_timeout`` expired.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()

    stream = RotatingS3Stream(config, transport=transport)
    stream.subscribe(EventLevel.INFO, _log_event)
    stream.subscribe(EventLevel.ERROR, _log_event)

    server = _start_http_server(stream, metrics_port) if metrics_port else None
    if install_signal_handlers:
        setup_signal_handlers(_Stopper(loop, queue))
        setup_flush_handler(lambda: loop.call_soon_threadsafe(stream.flush))

    _start_reader(source or sys.stdin.buffer, loop, queue)
    logger.info(
        "pipe_started",
        local_prefix=config.local_prefix,
        remote_prefix=config.remote_prefix,
        max_file_size=config.max_file_size,
        max_file_age=config.max_file_age,
        check_interval=config.check_interval,
    )

    try:
        while True:
            line = await queue.get()
            if line is None:
                break
            stream.write(line)
    finally:
        stream.flush()
        finished = await stream.close(timeout=upload_timeout)
        if server is not None:
            server.shutdown()
            server.server_close()
        logger.info("pipe_stopped", uploads_finished=finished)
    return finished


def load_config(config_file: Optional[str], **overrides: Any) -> StreamConfig:
    """CLI options override the config file, or the environment without one."""
    if config_file:
        return StreamConfig.from_yaml(config_file, **overrides)
    return StreamConfig.from_env(**overrides)


@click.group()
@click.version_option(package_name="rotating-s3-stream")
def cli() -> None:
    """Rotating S3 stream tools."""


@cli.command("pipe")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="YAML config file.")
@click.option("--local-prefix", help="Local directory for stream files.")
@click.option("--s3-prefix", "remote_prefix", help="Destination, s3://<bucket>/<prefix>.")
@click.option("--max-file-size", type=int, help="Rotate above this many bytes.")
@click.option("--max-file-age", type=int, help="Rotate after this many seconds.")
@click.option("--check-interval", type=float, help="Seconds between size/age checks.")
@click.option(
    "--transport",
    type=click.Choice(["boto3", "aws-cli"]),
    default="boto3",
    show_default=True,
    help="How rotated files are uploaded.",
)
@click.option("--upload-timeout", type=float, default=None, help="Max seconds to wait for uploads on exit.")
@click.option("--metrics-port", type=int, default=None, help="Serve /health and /metrics on this port.")
@click.option("--log-level", default="INFO", show_default=True)
@click.option("--json-logs/--console-logs", default=True, show_default=True)
def pipe(
    config_file: Optional[str],
    local_prefix: Optional[str],
    remote_prefix: Optional[str],
    max_file_size: Optional[int],
    max_file_age: Optional[int],
    check_interval: Optional[float],
    transport: str,
    upload_timeout: Optional[float],
    metrics_port: Optional[int],
    log_level: str,
    json_logs: bool,
) -> None:
    """Append stdin to a local file that is rotated to S3."""
    try:
        configure_logging(level=log_level, json_output=json_logs)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--log-level") from exc

    try:
        config = load_config(
            config_file,
            local_prefix=local_prefix,
            remote_prefix=remote_prefix,
            max_file_size=max_file_size,
            max_file_age=max_file_age,
            check_interval=check_interval,
        )
    except ConfigError as exc:
        raise click.UsageError(str(exc)) from exc

    chosen: Transport = AwsCliTransport() if transport == "aws-cli" else Boto3Transport()
    finished = asyncio.run(
        run_pipe(
            config,
            transport=chosen,
            metrics_port=metrics_port,
            upload_timeout=upload_timeout,
        )
    )
    if not finished:
        sys.exit(1)


if __name__ == "__main__":
    cli()
