import asyncio
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import boto3
import pytest
from moto import mock_aws

# Ensure src/ is on sys.path for local test runs without installation
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from rotating_s3.core.events import Event, EventLevel  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line(
        "markers",
        "integration: tests that touch real subprocesses, threads or moto S3",
    )
    config.addinivalue_line("markers", "s3: tests that interact with S3 or moto S3")
    config.addinivalue_line("markers", "slow: slow-running tests")


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """
    Records transfers and answers with a preset exit code.

    With ``gated=True`` every transfer waits until ``release()`` is called.
    """

    def __init__(
        self,
        code: int = 0,
        output: Sequence[Tuple[str, str]] = (),
        gated: bool = False,
    ) -> None:
        self.code = code
        self.output = list(output)
        self.calls: List[Tuple[str, str]] = []
        self.contents: List[bytes] = []
        self._gate: Optional[asyncio.Event] = asyncio.Event() if gated else None
        self.error: Optional[BaseException] = None

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def transfer(
        self, source: str, destination: str, on_output: Callable[[str, str], None]
    ) -> int:
        self.calls.append((source, destination))
        self.contents.append(Path(source).read_bytes())
        for stream, line in self.output:
            on_output(stream, line)
        if self._gate is not None:
            await self._gate.wait()
        if self.error is not None:
            raise self.error
        return self.code


class EventRecorder:
    """Collects events of both levels, in emission order."""

    def __init__(self) -> None:
        self.events: List[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def attach(self, target) -> "EventRecorder":
        target.subscribe(EventLevel.INFO, self)
        target.subscribe(EventLevel.ERROR, self)
        return self

    @property
    def infos(self) -> List[Event]:
        return [e for e in self.events if e.level is EventLevel.INFO]

    @property
    def errors(self) -> List[Event]:
        return [e for e in self.events if e.level is EventLevel.ERROR]

    def messages(self, level: Optional[EventLevel] = None) -> List[str]:
        return [e.message for e in self.events if level is None or e.level is level]


class CountingNames:
    """Deterministic file name generator: log-0001, log-0002, ..."""

    def __init__(self) -> None:
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"log-{self.count:04d}"


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def stream_options(tmp_path: Path) -> dict:
    """Valid stream options writing under tmp_path/logs."""
    return {
        "local_prefix": str(tmp_path / "logs"),
        "remote_prefix": "s3://test-bucket/app/logs",
        "max_file_size": 1000,
        "max_file_age": 60,
        "name_generator": CountingNames(),
    }


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fake credentials so boto3 never reaches for real ones."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def s3_client_mock(aws_credentials):
    """Moto-backed S3 client with a test bucket."""
    with mock_aws():
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket="test-bucket")
        yield s3
