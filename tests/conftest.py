"""Shared test fixtures for all test modules."""

from pathlib import Path

import httpx
import pytest

from promscope.core.models import Snapshot
from promscope.core.parser import parse_exposition

HTTP_EXPOSITION = """\
# HELP http_requests_total Total HTTP requests.
# TYPE http_requests_total counter
http_requests_total{method="GET",path="/api/users"} 10
http_requests_total{method="POST",path="/api/users"} 5
# HELP http_request_duration_seconds Request latency.
# TYPE http_request_duration_seconds histogram
http_request_duration_seconds_bucket{method="GET",le="0.1"} 5
http_request_duration_seconds_bucket{method="GET",le="0.5"} 9
http_request_duration_seconds_bucket{method="GET",le="+Inf"} 10
http_request_duration_seconds_sum{method="GET"} 2.5
http_request_duration_seconds_count{method="GET"} 10
# HELP rpc_duration_seconds RPC latency.
# TYPE rpc_duration_seconds summary
rpc_duration_seconds{service="a",quantile="0.5"} 0.2
rpc_duration_seconds{service="a",quantile="0.9"} 0.4
rpc_duration_seconds{service="b",quantile="0.5"} 0.3
rpc_duration_seconds{service="b",quantile="0.9"} 0.8
rpc_duration_seconds_sum{service="a"} 6
rpc_duration_seconds_count{service="a"} 20
rpc_duration_seconds_sum{service="b"} 9
rpc_duration_seconds_count{service="b"} 10
# TYPE go_goroutines gauge
go_goroutines 42
"""


@pytest.fixture
def exposition_text() -> str:
    """A small scrape with a counter, a histogram, a summary and a gauge."""
    return HTTP_EXPOSITION


@pytest.fixture
def snapshot(exposition_text: str) -> Snapshot:
    """The sample scrape parsed at a fixed timestamp."""
    return parse_exposition(exposition_text, timestamp=1_000)


@pytest.fixture
def layout_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for layout storage tests."""
    return str(tmp_path / "layout.db")


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(session)
            async with asgi_test_client(app) as client:
                response = await client.get("/catalog")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client


@pytest.fixture
def no_sleep():
    """Awaitable sleep stand-in that records requested delays."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep
