"""Non-blocking transport backed by :class:`httpx.AsyncClient`.

Mirrors :class:`~senserest.client.sync_client.SyncTransport` method for
method; see that module for the shaping, redirect and error rules.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Mapping, Optional

import httpx

from senserest.client.response import describe, redirect_target, same_origin, strip_credentials
from senserest.client.shaping import RequestShaper, client_options
from senserest.debug import ClientObserver, NullObserver
from senserest.exceptions import NetworkError
from senserest.profile import ConnectionProfile


class AsyncTransport:
    """Async request sender for one connection profile.

    Shares the profile, and therefore the cookie jar, with the blocking
    transport of the same client.  It keeps its own xrfkey generator, which
    only matters when the profile carries no xrfkey.

    Each event loop that uses the transport gets its own
    :class:`httpx.AsyncClient`, so one client can be driven by successive
    ``asyncio.run`` calls.

    Args:
        profile: The profile requests are shaped from.
        observer: Receives one line per call and per response.
        transport: Optional async httpx transport, e.g. :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        profile: ConnectionProfile,
        observer: Optional[ClientObserver] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._profile = profile
        self._observer = observer or NullObserver()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()
        self.shaper = RequestShaper(profile)

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _get_client(self) -> httpx.AsyncClient:
        # An AsyncClient's connection pool belongs to the loop that created
        # it, so a call from another loop gets a fresh client.  Never awaits
        # while holding the lock.
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._client is None or self._loop is not loop:
                options = client_options(self._profile)
                if self._transport is not None:
                    options["transport"] = self._transport
                self._client = httpx.AsyncClient(**options)
                self._loop = loop
            return self._client

    async def aclose(self) -> None:
        """Close the client of the running loop.

        A client left behind by a loop that is gone cannot be closed from
        here and is dropped.
        """
        with self._lock:
            client, self._client = self._client, None
            loop, self._loop = self._loop, None
        if client is not None and loop is asyncio.get_running_loop():
            await client.aclose()

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        content: Optional[Any] = None,
        headers: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        stream: bool = False,
    ) -> httpx.Response:
        """Send one request and return the response, whatever its status.

        Raises:
            NetworkError: On connection, DNS, TLS or timeout failures.
        """
        self._observer.log(f"Calling:\t{method} {endpoint}")
        url = self.shaper.url(endpoint)
        request_headers = self.shaper.headers(
            headers, content_type=content_type, has_body=content is not None
        )
        client = self._get_client()
        try:
            request = client.build_request(method, url, content=content, headers=request_headers)
            response = await client.send(request, stream=stream)
            if method == "GET" and response.status_code == 301:
                target = redirect_target(response)
                if target is not None:
                    await response.aclose()
                    self._observer.log(f"Redirected:\t{target}")
                    if same_origin(request.url, target):
                        request = client.build_request("GET", target, headers=request_headers)
                        response = await client.send(request, stream=stream)
                    else:
                        follow_headers = strip_credentials(request_headers, self._profile.headers)
                        request = client.build_request("GET", target, headers=follow_headers)
                        response = await client.send(request, stream=stream, auth=None)
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {endpoint} failed: {exc}") from exc
        self._observer.log(describe(response))
        return response
