"""Shared fixtures for ResourceDownload tests.

Network access is simulated with :class:`httpx.MockTransport` driven by an
async handler, so concurrency can be observed without sockets.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import Callable, Optional

import httpx
import pytest

from ImportKit.ResourceDownload.config import ResourceDownloadConfig


class FakeResourceServer:
    """Serve canned bodies per URL and record what was requested."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.routes: dict[str, tuple[int, bytes]] = {}
        self.errors: dict[str, Callable[[httpx.Request], Exception]] = {}
        self.requests: Counter = Counter()
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, url: str, body: bytes = b"image-bytes", status: int = 200) -> "FakeResourceServer":
        self.routes[url] = (status, body)
        return self

    def fail_with(self, url: str, factory: Callable[[httpx.Request], Exception]) -> "FakeResourceServer":
        self.errors[url] = factory
        return self

    @property
    def total_requests(self) -> int:
        return sum(self.requests.values())

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests[url] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if url in self.errors:
                raise self.errors[url](request)
            status, body = self.routes.get(url, (404, b"not found"))
            return httpx.Response(status, content=body)
        finally:
            self.in_flight -= 1

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingProgressSink:
    """Progress sink capturing every notification."""

    def __init__(self) -> None:
        self.started: Optional[int] = None
        self.advances = 0
        self.finished = 0
        self.warnings: list[str] = []

    def start(self, total: int) -> None:
        self.started = total

    def advance(self) -> None:
        self.advances += 1

    def finish(self) -> None:
        self.finished += 1

    def warning(self, message: str) -> None:
        self.warnings.append(message)


@pytest.fixture()
def server() -> FakeResourceServer:
    return FakeResourceServer()


@pytest.fixture()
def sink() -> RecordingProgressSink:
    return RecordingProgressSink()


@pytest.fixture()
def media_dir(tmp_path):
    return tmp_path / "media"


@pytest.fixture()
def import_dir(media_dir):
    return media_dir / "import"


@pytest.fixture()
def config() -> ResourceDownloadConfig:
    return ResourceDownloadConfig(scalar_fields=["image", "thumbnail"], list_fields=["gallery"])
