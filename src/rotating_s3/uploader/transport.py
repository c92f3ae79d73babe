"""Transfers copying a local file to an s3:// destination."""

from __future__ import annotations

import asyncio
import re
from typing import Any, Callable, Protocol, Sequence, Tuple
from urllib.parse import urlparse

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from rotating_s3.utils.logging import get_logger

logger = get_logger(__name__)

# Called with ("stdout" | "stderr", line) for every line of transfer output.
OutputCallback = Callable[[str, str], None]

EXIT_NOT_FOUND = 127
READ_CHUNK_BYTES = 4096
MAX_LINE_BYTES = 64 * 1024

_LINE_BREAK = re.compile(rb"[\r\n]")


class Transport(Protocol):
    async def transfer(
        self, source: str, destination: str, on_output: OutputCallback
    ) -> int:
        """Copy ``source`` to ``destination``; return 0 on success."""


def parse_s3_url(url: str) -> Tuple[str, str]:
    """Split ``s3://bucket/some/key`` into ``("bucket", "some/key")``."""
    parsed = urlparse(url)
    if parsed.scheme != "s3" or not parsed.netloc:
        raise ValueError(f"not an s3 url: {url!r}")
    return parsed.netloc, parsed.path.lstrip("/")


class Boto3Transport:
    """Async wrapper around boto3 ``upload_file``."""

    def __init__(self, s3_client: Any = None) -> None:
        self._s3 = s3_client

    @property
    def s3(self) -> Any:
        if self._s3 is None:
            self._s3 = boto3.client("s3")
        return self._s3

    async def transfer(
        self, source: str, destination: str, on_output: OutputCallback
    ) -> int:
        bucket, key = parse_s3_url(destination)
        try:
            await asyncio.to_thread(self.s3.upload_file, source, bucket, key)
        except ClientError as exc:
            on_output("stderr", str(exc))
            return _client_error_code(exc)
        except S3UploadFailedError as exc:
            # upload_file wraps the ClientError of the failed request.
            on_output("stderr", str(exc))
            cause = exc.__cause__ or exc.__context__
            return _client_error_code(cause) if isinstance(cause, ClientError) else 1
        except BotoCoreError as exc:
            on_output("stderr", str(exc))
            return 1
        on_output("stdout", f"upload: {source} to {destination}")
        return 0


def _client_error_code(exc: ClientError) -> int:
    """HTTP status of the failed request, 1 when the response has none."""
    response = getattr(exc, "response", {}) or {}
    status = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return int(status) if status else 1


class AwsCliTransport:
    """Runs ``aws s3 cp <source> <destination>`` and streams its output."""

    def __init__(
        self, executable: str = "aws", extra_args: Sequence[str] = ()
    ) -> None:
        self.executable = executable
        self.extra_args = tuple(extra_args)

    def command(self, source: str, destination: str) -> list[str]:
        return [self.executable, "s3", "cp", *self.extra_args, source, destination]

    async def transfer(
        self, source: str, destination: str, on_output: OutputCallback
    ) -> int:
        argv = self.command(source, destination)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            on_output("stderr", f"{self.executable}: {exc.strerror or exc}")
            return EXIT_NOT_FOUND

        assert proc.stdout is not None and proc.stderr is not None
        try:
            await asyncio.gather(
                _pump(proc.stdout, "stdout", on_output),
                _pump(proc.stderr, "stderr", on_output),
            )
        except BaseException:
            if proc.returncode is None:
                proc.kill()
            await proc.wait()
            raise
        code = await proc.wait()
        logger.debug("aws_cli_exited", argv=argv, code=code)
        return code


async def _pump(
    reader: asyncio.StreamReader, stream: str, on_output: OutputCallback
) -> None:
    """
    Forward output split on ``\\r`` and ``\\n``.

    The aws CLI redraws progress with bare carriage returns, so lines are
    split by hand instead of ``readline()``; anything longer than
    ``MAX_LINE_BYTES`` is forwarded in pieces.
    """
    pending = b""
    while True:
        chunk = await reader.read(READ_CHUNK_BYTES)
        if not chunk:
            break
        *lines, pending = _LINE_BREAK.split(pending + chunk)
        for line in lines:
            _forward(line, stream, on_output)
        while len(pending) > MAX_LINE_BYTES:
            _forward(pending[:MAX_LINE_BYTES], stream, on_output)
            pending = pending[MAX_LINE_BYTES:]
    _forward(pending, stream, on_output)


def _forward(raw: bytes, stream: str, on_output: OutputCallback) -> None:
    text = raw.decode("utf-8", errors="replace").strip()
    if text:
        on_output(stream, text)


__all__ = [
    "AwsCliTransport",
    "Boto3Transport",
    "OutputCallback",
    "Transport",
    "parse_s3_url",
]
