"""
Pytest configuration and fixtures for geomcp tests.

This module provides shared fixtures used across unit and integration
tests: scripted transports, a recording sleep, span sinks and a
configuration with a test token.
"""

import inspect
import random
from collections.abc import Callable
from typing import Any

import pytest

from geomcp.config import ServerConfig
from geomcp.errors import REASON_CONNECTION_REFUSED, TransportError
from geomcp.http.identification import ClientIdentity, IdentificationPolicy
from geomcp.http.models import HttpRequest, HttpResponse
from geomcp.http.pipeline import HttpPipeline
from geomcp.http.retry import RetryConfig, RetryPolicy
from geomcp.http.tracing import InMemorySpanSink, TracingPolicy

TOKEN_ENV_VARS = ("MAPBOX_ACCESS_TOKEN", "GEOMCP_ACCESS_TOKEN", "ACCESS_TOKEN")


class ScriptedTransport:
    """
    Transport that plays back a list of outcomes.

    Each outcome is an HttpResponse, an exception instance (raised), or a
    callable (sync or async) taking the request and returning either. Once
    the script runs out, the default response is returned.
    """

    def __init__(self, outcomes: list[Any] | None = None, default: HttpResponse | None = None) -> None:
        self._outcomes = list(outcomes or [])
        self.default = default or HttpResponse(200, body=b"{}")
        self.requests: list[HttpRequest] = []

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        outcome = self._outcomes.pop(0) if self._outcomes else self.default
        if callable(outcome) and not isinstance(outcome, HttpResponse):
            outcome = outcome(request)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def calls(self) -> int:
        return len(self.requests)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_refused(url: str = "https://api.example.com/") -> TransportError:
    """A fresh connection-refused transport failure."""
    return TransportError(reason=REASON_CONNECTION_REFUSED, url=url)


# =============================================================================
# Environment
# =============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer tokens and GEOMCP_* settings out of tests."""
    for name in TOKEN_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    for name in ("GEOMCP_LOG_LEVEL", "GEOMCP_API_ENDPOINT", "GEOMCP_TRACING__ENABLED"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> ServerConfig:
    """Configuration with a test token and a fake endpoint."""
    return ServerConfig(
        access_token="pk.test-token",
        api_endpoint="https://api.example.com/",
        client_version="9.9.9",
    )


# =============================================================================
# Pipeline building blocks
# =============================================================================


@pytest.fixture
def transport_factory() -> Callable[..., ScriptedTransport]:
    """Build a ScriptedTransport from a list of outcomes."""
    return ScriptedTransport


@pytest.fixture
def sleep() -> RecordingSleep:
    """Recording replacement for asyncio.sleep."""
    return RecordingSleep()


@pytest.fixture
def sink() -> InMemorySpanSink:
    """In-memory span sink."""
    return InMemorySpanSink()


@pytest.fixture
def pipeline_factory(
    sleep: RecordingSleep,
    sink: InMemorySpanSink,
) -> Callable[..., HttpPipeline]:
    """
    Build the standard identification -> retry -> tracing pipeline.

    Retries never really sleep and jitter is seeded.
    """

    def make(
        transport: ScriptedTransport,
        *,
        tracing: bool = True,
        retry: RetryConfig | None = None,
        seed: int = 7,
    ) -> HttpPipeline:
        pipeline = HttpPipeline(transport)
        pipeline.use_policy(IdentificationPolicy(ClientIdentity("geomcp", "9.9.9")))
        pipeline.use_policy(RetryPolicy(retry or RetryConfig(), sleep=sleep, rng=random.Random(seed)))
        pipeline.use_policy(TracingPolicy(sink, enabled=tracing))
        return pipeline

    return make


@pytest.fixture
def refused() -> Callable[..., TransportError]:
    """Build fresh connection-refused failures."""
    return make_refused
