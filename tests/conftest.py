"""Pytest configuration and fixtures for rest-client tests.

This file provides:
- make_descriptor: RequestDescriptor builder with sensible defaults
- mock_transport: MagicMock standing in for an open httpx.Client
- RecordingTransport: httpx.MockTransport that records requests it receives
- Fixtures: clients wired to a recording transport
"""

from __future__ import annotations

from typing import Any, Callable, Generator
from unittest.mock import MagicMock

import httpx
import pytest

from rest_client.client import Client
from rest_client.models import ClientConfig, Method, RequestDescriptor


def make_descriptor(
    method: Method | None = Method.GET,
    base_address: str = "api.example.com",
    path: str = "/v1/widgets",
    **kwargs: Any,
) -> RequestDescriptor:
    """Create a RequestDescriptor for testing.

    Prefer this over constructing RequestDescriptor directly - it provides
    sensible defaults and documents which fields are typically varied in tests.
    """
    return RequestDescriptor(method=method, base_address=base_address, path=path, **kwargs)


def make_response(
    status_code: int = 200,
    body: bytes = b"",
    headers: list[tuple[str, str]] | None = None,
) -> httpx.Response:
    """Create an httpx.Response carrying exactly the given headers.

    Uses a raw stream so httpx does not add a Content-Length header.
    """
    return httpx.Response(status_code, headers=headers or [], stream=httpx.ByteStream(body))


def mock_transport() -> MagicMock:
    """Create a MagicMock httpx.Client that reports itself open."""
    transport = MagicMock(spec=httpx.Client)
    transport.is_closed = False
    return transport


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it handles.

    Usage:
        transport = RecordingTransport(lambda request: make_response(200))
        client = Client(transport=httpx.Client(transport=transport))
        client.call(descriptor)
        assert transport.requests[0].method == "GET"
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


@pytest.fixture
def widget_transport() -> RecordingTransport:
    """Transport answering every request with 200, {"ok":true} and X-Id: 42."""
    return RecordingTransport(
        lambda request: make_response(200, b'{"ok":true}', [("X-Id", "42")])
    )


@pytest.fixture
def widget_client(widget_transport: RecordingTransport) -> Generator[Client, None, None]:
    """Production-mode Client sending through widget_transport."""
    http_client = httpx.Client(transport=widget_transport)
    client = Client(ClientConfig(test_mode=False), transport=http_client)
    try:
        yield client
    finally:
        client.close()
        http_client.close()
