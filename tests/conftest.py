"""
Pytest configuration and fixtures for the IFC Pipeline client tests.
"""

from typing import Any, Callable, Mapping

import httpx
import pytest

from adapters.http_client import IfcPipelineClient
from core.config import AppSettings
from core.domain.models import Credential

API_KEY = "test-secret-key-12345"
BASE_URL = "http://pipeline.test/"


class FakeClock:
    """Deterministic clock whose sleep advances time instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeApi:
    """In-memory `PipelineApi`; ``handler(method, path, body)`` returns or raises."""

    def __init__(self, handler: Callable[[str, str, Any], Any]) -> None:
        self.handler = handler
        self.calls: list[tuple[str, str, Any]] = []

    def _dispatch(self, method: str, path: str, body: Any) -> Any:
        self.calls.append((method, path, body))
        result = self.handler(method, path, body)
        if isinstance(result, Exception):
            raise result
        return result

    async def request(self, method: str, path: str, body: Mapping[str, Any] | None = None, query=None) -> Any:
        return self._dispatch(method, path, dict(body) if body else None)

    async def download(self, method: str, path: str, body=None, query=None) -> bytes:
        return self._dispatch(method, path, dict(body) if body else None)

    async def upload(self, path, *, filename, content, content_type, field_name="file", query=None) -> Any:
        return self._dispatch(
            "POST",
            path,
            {"filename": filename, "content": content, "content_type": content_type, "field": field_name},
        )

    def paths(self, method: str | None = None) -> list[str]:
        return [p for m, p, _ in self.calls if method is None or m == method]


@pytest.fixture
def settings() -> AppSettings:
    """Settings isolated from any local .env file."""
    return AppSettings(_env_file=None, base_url=BASE_URL, api_key=API_KEY)


@pytest.fixture
def credential(settings) -> Credential:
    return settings.credential()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_client(credential, settings):
    """Build an `IfcPipelineClient` backed by an `httpx.MockTransport` handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> IfcPipelineClient:
        return IfcPipelineClient(credential, settings, transport=httpx.MockTransport(handler))

    return _make
