"""The public client.

:class:`RestClient` ties the pieces together: a
:class:`~senserest.profile.ConnectionProfile` describing the connection, a
:class:`~senserest.auth.base.ConnectionStrategy` chosen by one of the
``as_*`` methods, an :class:`~senserest.auth.coordinator.AuthenticationCoordinator`
running the strategy's handshake once, and a blocking and an async transport
sending the requests.

Every data call goes through the same steps:

1. :class:`~senserest.exceptions.ConnectionNotConfiguredError` if no
   ``as_*`` method was called.
2. The coordinator makes sure the handshake has run (raising
   :class:`~senserest.exceptions.AuthenticationFailedError` without sending
   the call if it failed).
3. The transport shapes and sends the request.
4. Non-success statuses raise :class:`~senserest.exceptions.HttpFailureError`,
   except for the ``*_http`` variants called with ``throw_on_failure=False``.

Example::

    with RestClient("https://sense.example.com") as client:
        client.as_ntlm_user_via_proxy()
        about = client.get_json("/qrs/about")
        qmc = client.connect_as_qmc()
        qmc.post_json("/qrs/stream", {"name": "Reports"})
"""

from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Iterator, Mapping, Optional
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter

from senserest.auth.base import ConnectionStrategy
from senserest.auth.coordinator import AuthenticationCoordinator, AuthState
from senserest.certificates import CertificateSet
from senserest.client.async_client import AsyncTransport
from senserest.client.response import (
    decode_json,
    raise_for_failure,
    raise_for_failure_async,
    same_origin,
)
from senserest.client.sync_client import SyncTransport
from senserest.config import resolve_credential
from senserest.debug import ClientObserver, NullObserver
from senserest.exceptions import ConnectionNotConfiguredError, InvalidArgumentError, SenseRestError
from senserest.models import ClientSettings, ConnectionType, QcsSessionInfo, User
from senserest.profile import ConnectionProfile
from senserest.strategies import (
    AnonymousViaProxy,
    ApiKeyViaQcs,
    ClientCredentialsViaQcs,
    DirectConnection,
    ExistingSessionViaProxy,
    ExistingSessionViaQcs,
    JwtViaProxy,
    JwtViaQcs,
    NtlmUserViaProxy,
    StaticHeaderUserViaProxy,
)
from senserest.strategies.direct import DEFAULT_DIRECT_PORT

SECURITY_HEADER = "X-Qlik-Security"
QMC_SECURITY_CONTEXT = "Context=ManagementAccess"
HUB_SECURITY_CONTEXT = "Context=AppAccess"

ITEMS_ENDPOINT = "/api/v1/items"
MAX_PAGE_SIZE = 100

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


def _json_content(body: Any) -> bytes:
    if body is None:
        return b""
    return _ANY_ADAPTER.dump_json(body, by_alias=True)


class RestClient:
    """Client for the REST APIs of one deployment or cloud tenant.

    Args:
        url: Base address, e.g. ``https://sense.example.com`` or
            ``https://tenant.eu.qlikcloud.com``.
        observer: Receives diagnostics, see :mod:`senserest.debug`.
        transport: httpx transport for blocking calls.  Tests pass an
            :class:`httpx.MockTransport`.
        async_transport: httpx transport for async calls.
    """

    def __init__(
        self,
        url: str,
        *,
        observer: Optional[ClientObserver] = None,
        transport: Optional[httpx.BaseTransport] = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._attach(ConnectionProfile(base_url=url), observer, transport, async_transport)
        self._coordinator = self._new_coordinator(authenticated=False)

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        observer: Optional[ClientObserver] = None,
        **kwargs: Any,
    ) -> RestClient:
        """Create a client from :class:`~senserest.models.ClientSettings`.

        Extra keyword arguments are passed to the constructor.  With an
        ``api_key_source`` the key is resolved through
        :func:`~senserest.config.resolve_credential` and the client is
        connected with :meth:`as_api_key_via_qcs`.

        Raises:
            ConfigError: If the API key source cannot be resolved.
        """
        client = cls(settings.url, observer=observer, **kwargs)
        client._profile.timeout = settings.timeout
        client._profile.proxy = settings.proxy
        client._profile.custom_user_agent = settings.user_agent
        client._profile.certificate_validation = settings.verify_ssl
        if settings.api_key_source:
            client.as_api_key_via_qcs(resolve_credential(settings.api_key_source))
        return client

    def _attach(
        self,
        profile: ConnectionProfile,
        observer: Optional[ClientObserver],
        transport: Optional[httpx.BaseTransport],
        async_transport: Optional[httpx.AsyncBaseTransport],
    ) -> None:
        self._profile = profile
        self._observer: ClientObserver = observer or NullObserver()
        self._transport = transport
        self._async_transport = async_transport
        self._sync = SyncTransport(profile, self._observer, transport)
        self._async = AsyncTransport(profile, self._observer, async_transport)
        self._strategy: Optional[ConnectionStrategy] = None

    def _new_coordinator(self, authenticated: bool) -> AuthenticationCoordinator:
        return AuthenticationCoordinator(
            self._handshake, self._handshake_async, authenticated=authenticated
        )

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> RestClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    async def __aenter__(self) -> RestClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def close(self) -> None:
        self._sync.close()

    async def aclose(self) -> None:
        self._sync.close()
        await self._async.aclose()

    # ------------------------------------------------------------------ #
    # Connection modes
    # ------------------------------------------------------------------ #

    def as_direct_connection(
        self,
        user_directory: str,
        user_id: str,
        port: int = DEFAULT_DIRECT_PORT,
        certificate_validation: Optional[bool] = None,
        certificates: Optional[CertificateSet] = None,
    ) -> None:
        """Connect straight to the repository service with a client certificate.

        Raises:
            CertificatesNotLoadedError: If *certificates* is ``None``.
            InvalidArgumentError: On an empty identity or reconfiguration.
        """
        self._connect(
            DirectConnection(user_directory, user_id, certificates, port), certificate_validation
        )

    def as_ntlm_user_via_proxy(
        self,
        credential: Optional[httpx.Auth] = None,
        certificate_validation: Optional[bool] = None,
    ) -> None:
        """Use Windows authentication through the proxy.

        *credential* is any :class:`httpx.Auth` performing the NTLM/Negotiate
        exchange.  The first call triggers ``GET /qrs/about``.
        """
        self._connect(NtlmUserViaProxy(credential), certificate_validation)

    def as_static_header_user_via_proxy(
        self,
        user_id: str,
        header_name: str,
        certificate_validation: Optional[bool] = None,
    ) -> None:
        self._connect(StaticHeaderUserViaProxy(user_id, header_name), certificate_validation)

    def as_anonymous_user_via_proxy(self, certificate_validation: Optional[bool] = None) -> None:
        self._connect(AnonymousViaProxy(), certificate_validation)

    def as_jwt_via_proxy(self, jwt: str, certificate_validation: Optional[bool] = None) -> None:
        self._connect(JwtViaProxy(jwt), certificate_validation)

    def as_jwt_via_qcs(self, jwt: str) -> None:
        """Open a tenant session with a JWT; the first call posts to ``/login/jwt-session``."""
        self._connect(JwtViaQcs(jwt))

    def as_api_key_via_qcs(self, api_key: str) -> None:
        self._connect(ApiKeyViaQcs(api_key))

    def as_client_credentials_via_qcs(self, client_id: str, client_secret: str) -> None:
        """Use an OAuth client; the first call fetches an access token from ``/oauth/token``."""
        self._connect(ClientCredentialsViaQcs(client_id, client_secret))

    def as_existing_session_via_proxy(
        self,
        session_id: str,
        cookie_name: str,
        certificate_validation: Optional[bool] = None,
    ) -> None:
        self._connect(ExistingSessionViaProxy(session_id, cookie_name), certificate_validation)

    def as_existing_session_via_qcs(self, session_info: QcsSessionInfo) -> None:
        self._connect(ExistingSessionViaQcs(session_info))

    def _connect(
        self, strategy: ConnectionStrategy, certificate_validation: Optional[bool] = None
    ) -> None:
        strategy.configure(self._profile)
        if certificate_validation is not None:
            self._profile.certificate_validation = certificate_validation
        self._strategy = strategy
        if not strategy.requires_handshake:
            self._coordinator.mark_authenticated()
        self._observer.log(f"Connection type set to {strategy.connection_type.value}")

    # ------------------------------------------------------------------ #
    # Authentication
    # ------------------------------------------------------------------ #

    def _handshake(self) -> None:
        strategy = self._strategy
        if strategy is None:
            raise ConnectionNotConfiguredError()
        self._observer.log(f"Authenticating ({strategy.connection_type.value})")
        try:
            strategy.authenticate(self._profile, self._sync)
        except Exception as exc:
            self._observer.log(f"Authentication failed: {exc}")
            raise
        self._observer.log("Authentication complete.")

    async def _handshake_async(self) -> None:
        strategy = self._strategy
        if strategy is None:
            raise ConnectionNotConfiguredError()
        self._observer.log(f"Authenticating ({strategy.connection_type.value})")
        try:
            await strategy.authenticate_async(self._profile, self._async)
        except Exception as exc:
            self._observer.log(f"Authentication failed: {exc}")
            raise
        self._observer.log("Authentication complete.")

    def _ensure_ready(self) -> None:
        if not self._profile.is_configured:
            raise ConnectionNotConfiguredError()
        self._coordinator.ensure_authenticated()

    async def _ensure_ready_async(self) -> None:
        if not self._profile.is_configured:
            raise ConnectionNotConfiguredError()
        await self._coordinator.ensure_authenticated_async()

    def authenticate(self) -> bool:
        """Run the handshake now instead of on the first call.

        Returns:
            ``True`` when the client is authenticated, ``False`` when the
            handshake failed or no connection type was configured.  The
            reason is reported to the observer.
        """
        try:
            self._ensure_ready()
        except SenseRestError as exc:
            self._observer.log(f"Authentication failed: {exc}")
            return False
        return True

    async def authenticate_async(self) -> bool:
        try:
            await self._ensure_ready_async()
        except SenseRestError as exc:
            self._observer.log(f"Authentication failed: {exc}")
            return False
        return True

    @property
    def is_authenticated(self) -> bool:
        return self._coordinator.is_authenticated

    @property
    def auth_state(self) -> AuthState:
        return self._coordinator.state

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def url(self) -> str:
        return self._profile.base_url

    @property
    def connection_type(self) -> ConnectionType:
        return self._profile.connection_type

    @property
    def user(self) -> User:
        return self._profile.user

    @property
    def headers(self) -> dict[str, str]:
        """Custom headers sent with every request.  Mutable."""
        return self._profile.headers

    @property
    def default_arguments(self) -> dict[str, str]:
        """Query arguments appended to every request.  Mutable."""
        return self._profile.default_arguments

    @property
    def session_info(self) -> QcsSessionInfo:
        """Snapshot of the tenant session, for :meth:`as_existing_session_via_qcs`."""
        return self._profile.session_info

    def get_cookie(self, name: str) -> Optional[str]:
        return self._profile.get_cookie(name)

    # Transport settings are read when the first request is sent.

    @property
    def timeout(self) -> Optional[float]:
        return self._profile.timeout

    @timeout.setter
    def timeout(self, value: Optional[float]) -> None:
        self._profile.timeout = value

    @property
    def proxy(self) -> Optional[str]:
        return self._profile.proxy

    @proxy.setter
    def proxy(self, value: Optional[str]) -> None:
        self._profile.proxy = value

    @property
    def custom_user_agent(self) -> Optional[str]:
        return self._profile.custom_user_agent

    @custom_user_agent.setter
    def custom_user_agent(self, value: Optional[str]) -> None:
        self._profile.custom_user_agent = value

    # ------------------------------------------------------------------ #
    # Derived clients
    # ------------------------------------------------------------------ #

    def derive(
        self,
        *,
        headers: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        xrfkey: Optional[str] = None,
    ) -> RestClient:
        """Return a new client for the same connection with some overrides.

        The derived client gets a clone of the profile -- its own headers and
        settings, the same cookie jar and certificates -- and its own
        coordinator and transports.  It starts authenticated iff this client
        is authenticated now; otherwise it runs the handshake itself on first
        use.

        Raises:
            InvalidArgumentError: If *xrfkey* is malformed.
        """
        profile = self._profile.clone()
        if headers:
            profile.headers.update(headers)
        if content_type is not None:
            profile.content_type = content_type
        if xrfkey is not None:
            profile.set_xrfkey(xrfkey)

        child = type(self).__new__(type(self))
        child._attach(profile, self._observer, self._transport, self._async_transport)
        child._strategy = self._strategy
        child._coordinator = AuthenticationCoordinator.seeded_from(
            self._coordinator, child._handshake, child._handshake_async
        )
        return child

    def connect_as_qmc(self) -> RestClient:
        """Derived client acting in the management console security context."""
        return self.derive(headers={SECURITY_HEADER: QMC_SECURITY_CONTEXT})

    def connect_as_hub(self) -> RestClient:
        """Derived client acting in the hub security context."""
        return self.derive(headers={SECURITY_HEADER: HUB_SECURITY_CONTEXT})

    def with_xrfkey(self, key: str) -> RestClient:
        return self.derive(xrfkey=key)

    def with_content_type(self, content_type: str) -> RestClient:
        return self.derive(content_type=content_type)

    # ------------------------------------------------------------------ #
    # Core send
    # ------------------------------------------------------------------ #

    def _send(
        self,
        method: str,
        endpoint: str,
        *,
        content: Optional[Any] = None,
        content_type: Optional[str] = None,
        stream: bool = False,
        throw_on_failure: bool = True,
    ) -> httpx.Response:
        self._ensure_ready()
        response = self._sync.request(
            method, endpoint, content=content, content_type=content_type, stream=stream
        )
        if throw_on_failure:
            raise_for_failure(response)
        return response

    async def _send_async(
        self,
        method: str,
        endpoint: str,
        *,
        content: Optional[Any] = None,
        content_type: Optional[str] = None,
        stream: bool = False,
        throw_on_failure: bool = True,
    ) -> httpx.Response:
        await self._ensure_ready_async()
        response = await self._async.request(
            method, endpoint, content=content, content_type=content_type, stream=stream
        )
        if throw_on_failure:
            await raise_for_failure_async(response)
        return response

    # ------------------------------------------------------------------ #
    # GET
    # ------------------------------------------------------------------ #

    def get(self, endpoint: str) -> str:
        """GET *endpoint* and return the body as text.

        Raises:
            ConnectionNotConfiguredError: No connection type configured.
            AuthenticationFailedError: The handshake failed.
            HttpFailureError: Non-success status.
            NetworkError: Transport failure.
        """
        return self._send("GET", endpoint).text

    def get_bytes(self, endpoint: str) -> bytes:
        return self._send("GET", endpoint).content

    @contextmanager
    def get_stream(self, endpoint: str) -> Iterator[Iterator[bytes]]:
        """GET *endpoint* and yield an iterator over the body in chunks.

        Example::

            with client.get_stream("/qrs/download/app/...") as chunks:
                for chunk in chunks:
                    out.write(chunk)
        """
        response = self._send("GET", endpoint, stream=True)
        try:
            yield response.iter_bytes()
        finally:
            response.close()

    def get_json(self, endpoint: str, model: Optional[Any] = None) -> Any:
        """GET *endpoint* and decode the JSON body.

        Args:
            endpoint: Path relative to the base address.
            model: Optional type to validate the body against, e.g. a
                pydantic model or ``list[MyModel]``.
        """
        return decode_json(self._send("GET", endpoint).text, model)

    def get_http(self, endpoint: str, throw_on_failure: bool = True) -> httpx.Response:
        """GET *endpoint* and return the raw :class:`httpx.Response`."""
        return self._send("GET", endpoint, throw_on_failure=throw_on_failure)

    async def get_async(self, endpoint: str) -> str:
        return (await self._send_async("GET", endpoint)).text

    async def get_bytes_async(self, endpoint: str) -> bytes:
        return (await self._send_async("GET", endpoint)).content

    @asynccontextmanager
    async def get_stream_async(self, endpoint: str) -> AsyncIterator[AsyncIterator[bytes]]:
        response = await self._send_async("GET", endpoint, stream=True)
        try:
            yield response.aiter_bytes()
        finally:
            await response.aclose()

    async def get_json_async(self, endpoint: str, model: Optional[Any] = None) -> Any:
        return decode_json((await self._send_async("GET", endpoint)).text, model)

    async def get_http_async(self, endpoint: str, throw_on_failure: bool = True) -> httpx.Response:
        return await self._send_async("GET", endpoint, throw_on_failure=throw_on_failure)

    # ------------------------------------------------------------------ #
    # POST
    # ------------------------------------------------------------------ #

    def post(self, endpoint: str, body: str | bytes = "") -> str:
        """POST *body* with the client's content type and return the response text."""
        return self._send("POST", endpoint, content=body).text

    def post_json(self, endpoint: str, body: Any = None, model: Optional[Any] = None) -> Any:
        """POST *body* serialized as JSON and decode the JSON response.

        *body* may be anything pydantic can serialize, including models.
        """
        response = self._send(
            "POST", endpoint, content=_json_content(body), content_type="application/json"
        )
        return decode_json(response.text, model)

    def post_content(
        self, endpoint: str, content: Any, content_type: Optional[str] = None
    ) -> str:
        """POST raw *content* (bytes, str or an iterator of bytes), e.g. a file upload."""
        return self._send("POST", endpoint, content=content, content_type=content_type).text

    def post_http(
        self,
        endpoint: str,
        body: Any = "",
        content_type: Optional[str] = None,
        throw_on_failure: bool = True,
    ) -> httpx.Response:
        return self._send(
            "POST", endpoint, content=body, content_type=content_type,
            throw_on_failure=throw_on_failure,
        )

    async def post_async(self, endpoint: str, body: str | bytes = "") -> str:
        return (await self._send_async("POST", endpoint, content=body)).text

    async def post_json_async(
        self, endpoint: str, body: Any = None, model: Optional[Any] = None
    ) -> Any:
        response = await self._send_async(
            "POST", endpoint, content=_json_content(body), content_type="application/json"
        )
        return decode_json(response.text, model)

    async def post_content_async(
        self, endpoint: str, content: Any, content_type: Optional[str] = None
    ) -> str:
        response = await self._send_async(
            "POST", endpoint, content=content, content_type=content_type
        )
        return response.text

    async def post_http_async(
        self,
        endpoint: str,
        body: Any = "",
        content_type: Optional[str] = None,
        throw_on_failure: bool = True,
    ) -> httpx.Response:
        return await self._send_async(
            "POST", endpoint, content=body, content_type=content_type,
            throw_on_failure=throw_on_failure,
        )

    # ------------------------------------------------------------------ #
    # PUT
    # ------------------------------------------------------------------ #

    def put(self, endpoint: str, body: str | bytes = "") -> str:
        return self._send("PUT", endpoint, content=body).text

    def put_json(self, endpoint: str, body: Any = None, model: Optional[Any] = None) -> Any:
        response = self._send(
            "PUT", endpoint, content=_json_content(body), content_type="application/json"
        )
        return decode_json(response.text, model)

    def put_content(
        self, endpoint: str, content: Any, content_type: Optional[str] = None
    ) -> str:
        return self._send("PUT", endpoint, content=content, content_type=content_type).text

    def put_http(
        self,
        endpoint: str,
        body: Any = "",
        content_type: Optional[str] = None,
        throw_on_failure: bool = True,
    ) -> httpx.Response:
        return self._send(
            "PUT", endpoint, content=body, content_type=content_type,
            throw_on_failure=throw_on_failure,
        )

    async def put_async(self, endpoint: str, body: str | bytes = "") -> str:
        return (await self._send_async("PUT", endpoint, content=body)).text

    async def put_json_async(
        self, endpoint: str, body: Any = None, model: Optional[Any] = None
    ) -> Any:
        response = await self._send_async(
            "PUT", endpoint, content=_json_content(body), content_type="application/json"
        )
        return decode_json(response.text, model)

    async def put_content_async(
        self, endpoint: str, content: Any, content_type: Optional[str] = None
    ) -> str:
        response = await self._send_async(
            "PUT", endpoint, content=content, content_type=content_type
        )
        return response.text

    async def put_http_async(
        self,
        endpoint: str,
        body: Any = "",
        content_type: Optional[str] = None,
        throw_on_failure: bool = True,
    ) -> httpx.Response:
        return await self._send_async(
            "PUT", endpoint, content=body, content_type=content_type,
            throw_on_failure=throw_on_failure,
        )

    # ------------------------------------------------------------------ #
    # DELETE
    # ------------------------------------------------------------------ #

    def delete(self, endpoint: str) -> str:
        return self._send("DELETE", endpoint).text

    def delete_http(self, endpoint: str, throw_on_failure: bool = True) -> httpx.Response:
        return self._send("DELETE", endpoint, throw_on_failure=throw_on_failure)

    async def delete_async(self, endpoint: str) -> str:
        return (await self._send_async("DELETE", endpoint)).text

    async def delete_http_async(
        self, endpoint: str, throw_on_failure: bool = True
    ) -> httpx.Response:
        return await self._send_async("DELETE", endpoint, throw_on_failure=throw_on_failure)

    # ------------------------------------------------------------------ #
    # Paging (cloud tenants)
    # ------------------------------------------------------------------ #

    def fetch_all(self, endpoint: str, model: Optional[Any] = None) -> Iterator[Any]:
        """Yield the ``data`` items of *endpoint* and of every following page.

        Pages are chained through ``links.next.href``.  With *model*, each
        item is validated against it.

        Raises:
            SenseRestError: If a next link points away from the base address.
        """
        adapter = TypeAdapter(model) if model is not None else None
        next_endpoint: Optional[str] = endpoint
        while next_endpoint:
            page = self.get_json(next_endpoint)
            for item in page.get("data") or []:
                yield adapter.validate_python(item) if adapter else item
            next_endpoint = self._next_page(page)

    def fetch_all_items(self, resource_type: str, page_size: int = 10) -> Iterator[Any]:
        """Yield all items of *resource_type* from the tenant's items API.

        Raises:
            InvalidArgumentError: If *page_size* is not between 1 and 100.
        """
        return self.fetch_all(self._items_endpoint(resource_type, page_size))

    async def fetch_all_async(self, endpoint: str, model: Optional[Any] = None) -> list[Any]:
        adapter = TypeAdapter(model) if model is not None else None
        items: list[Any] = []
        next_endpoint: Optional[str] = endpoint
        while next_endpoint:
            page = await self.get_json_async(next_endpoint)
            for item in page.get("data") or []:
                items.append(adapter.validate_python(item) if adapter else item)
            next_endpoint = self._next_page(page)
        return items

    async def fetch_all_items_async(self, resource_type: str, page_size: int = 10) -> list[Any]:
        return await self.fetch_all_async(self._items_endpoint(resource_type, page_size))

    @staticmethod
    def _items_endpoint(resource_type: str, page_size: int) -> str:
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise InvalidArgumentError(
                f"Page size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}."
            )
        return f"{ITEMS_ENDPOINT}?resourceType={quote(resource_type, safe='')}&limit={page_size}"

    def _next_page(self, page: Mapping[str, Any]) -> Optional[str]:
        links = page.get("links") or {}
        href = (links.get("next") or {}).get("href")
        if not href:
            return None
        link = httpx.URL(href)
        if link.is_relative_url:
            return href
        base = httpx.URL(self._profile.base_url)
        prefix = base.path.rstrip("/")
        if not same_origin(base, link) or not link.path.startswith(prefix + "/"):
            raise SenseRestError(f"Next page link {href} is outside {self._profile.base_url}.")
        return link.raw_path.decode("ascii")[len(prefix):]

    def __repr__(self) -> str:
        return f"<RestClient {self.url} {self.connection_type.value}>"
