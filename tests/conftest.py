# Ariwa - Shared Test Fixtures
"""Shared pytest fixtures for the client tests."""

import json
from typing import Callable, List

import httpx
import pytest


class FakeClock:
    """Manually advanced clock for cache and rate-limit tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def json_response(status: int = 200, body=None) -> httpx.Response:
    """Build a JSON response for the mock transport."""
    return httpx.Response(
        status,
        content=json.dumps(body if body is not None else {}).encode(),
        headers={"content-type": "application/json"},
    )


@pytest.fixture
def clock():
    """Return a fake clock starting at t=1000s."""
    return FakeClock()


@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    """Requests seen by the mock transport, in order."""
    return []


@pytest.fixture
def make_http_client(recorded_requests) -> Callable:
    """Factory for an httpx client answering through ``handler``.

    Every request is appended to ``recorded_requests`` before the handler runs.
    """

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        def transport_handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return handler(request)

        return httpx.AsyncClient(transport=httpx.MockTransport(transport_handler))

    return factory


@pytest.fixture
def respond() -> Callable[..., httpx.Response]:
    """Return the JSON response builder."""
    return json_response
