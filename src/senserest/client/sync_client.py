"""Blocking transport -- one :class:`httpx.Client` per connection profile.

:class:`SyncTransport` shapes and sends requests for a
:class:`~senserest.profile.ConnectionProfile`.  It knows nothing about
authentication: :class:`~senserest.client.rest_client.RestClient` makes sure
the coordinator has run before it sends a data call, and the strategies use
the transport directly for their handshake requests.

Layered on top of httpx:

- **Per-request shaping** -- URL, default arguments, xrfkey and headers are
  built from the profile by :class:`~senserest.client.shaping.RequestShaper`.
- **Redirect-once on GET** -- a single ``301`` is followed to its
  ``Location``; the follow-up response is returned as is, even if it is
  another redirect.  A follow-up to another origin goes without the
  client credential, identity headers or custom headers.  Other methods
  never follow.
- **Error mapping** -- :class:`httpx.TransportError` becomes
  :class:`~senserest.exceptions.NetworkError`.

See Also:
    :class:`~senserest.client.async_client.AsyncTransport` for the
    equivalent non-blocking implementation.
"""

from __future__ import annotations

import threading
from typing import Any, Mapping, Optional

import httpx

from senserest.client.response import describe, redirect_target, same_origin, strip_credentials
from senserest.client.shaping import RequestShaper, client_options
from senserest.debug import ClientObserver, NullObserver
from senserest.exceptions import NetworkError
from senserest.profile import ConnectionProfile


class SyncTransport:
    """Blocking request sender for one connection profile.

    The underlying :class:`httpx.Client` is created on first use, from the
    profile as it is at that moment, so connection settings made after the
    transport was constructed still apply.  Concurrent first calls share a
    single client.

    Args:
        profile: The profile requests are shaped from.
        observer: Receives one line per call and per response.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        profile: ConnectionProfile,
        observer: Optional[ClientObserver] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._profile = profile
        self._observer = observer or NullObserver()
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._lock = threading.Lock()
        self.shaper = RequestShaper(profile)

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _get_client(self) -> httpx.Client:
        client = self._client
        if client is None:
            with self._lock:
                if self._client is None:
                    options = client_options(self._profile)
                    if self._transport is not None:
                        options["transport"] = self._transport
                    self._client = httpx.Client(**options)
                client = self._client
        return client

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def request(
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

        Args:
            method: HTTP method.
            endpoint: Path relative to the base address, optionally with a
                query string.
            content: Request body (``bytes``, ``str`` or an iterator of
                ``bytes``).  ``None`` for no body.
            headers: Headers overriding the profile's for this call only.
            content_type: ``Content-Type`` for the body; defaults to the
                profile's content type.
            stream: Return without reading the body.  The caller must close
                the response.

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
            response = client.send(request, stream=stream)
            if method == "GET" and response.status_code == 301:
                target = redirect_target(response)
                if target is not None:
                    response.close()
                    self._observer.log(f"Redirected:\t{target}")
                    if same_origin(request.url, target):
                        request = client.build_request("GET", target, headers=request_headers)
                        response = client.send(request, stream=stream)
                    else:
                        follow_headers = strip_credentials(request_headers, self._profile.headers)
                        request = client.build_request("GET", target, headers=follow_headers)
                        response = client.send(request, stream=stream, auth=None)
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {endpoint} failed: {exc}") from exc
        self._observer.log(describe(response))
        return response
