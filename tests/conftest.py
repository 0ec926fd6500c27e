"""Shared test fixtures for senserest.

The network is faked with :class:`httpx.MockTransport`.  A :class:`Recorder`
is the transport's handler: it records every request and answers from a
small route table, falling back to ``200 {}``.  The ``make_client`` fixture
builds a :class:`~senserest.client.rest_client.RestClient` whose sync and
async transports both go through the test's recorder.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator, Optional

import httpx
import pytest

from senserest.client.rest_client import RestClient
from senserest.debug import ClientObserver

BASE_URL = "https://sense.example.com"
CLOUD_URL = "https://tenant.eu.qlikcloud.com"

Route = Callable[[httpx.Request], httpx.Response]


class Recorder:
    """MockTransport handler that records requests and serves routes."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Route] = {}
        self._lock = threading.Lock()

    def route(self, method: str, path: str, responder: Route) -> None:
        self._routes[(method, path)] = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        responder = self._routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(200, json={})
        return responder(request)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


class ListObserver:
    """Observer collecting messages in a list."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def observer() -> ListObserver:
    return ListObserver()


@pytest.fixture
def make_client(recorder: Recorder) -> Iterator[Callable[..., RestClient]]:
    """Factory for clients wired to the test's :class:`Recorder`."""
    clients: list[RestClient] = []

    def factory(url: str = BASE_URL, observer: Optional[ClientObserver] = None, **kwargs: Any) -> RestClient:
        transport = httpx.MockTransport(recorder)
        client = RestClient(
            url, observer=observer, transport=transport, async_transport=transport, **kwargs
        )
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()
