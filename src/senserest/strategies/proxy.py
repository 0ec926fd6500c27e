"""Connection modes that go through a virtual proxy of a Windows deployment.

The proxy decides who the user is.  Only the NTLM mode talks to the server
before the first data call: it issues ``GET /qrs/about`` so the Windows
authentication round trips and the session cookie are settled once, not
raced by concurrent data calls.
"""

from __future__ import annotations

import getpass
import os
from typing import TYPE_CHECKING, Optional

import httpx

from senserest.auth.base import ConnectionStrategy
from senserest.client.response import raise_for_failure, raise_for_failure_async
from senserest.exceptions import InvalidArgumentError
from senserest.models import ConnectionType, User
from senserest.profile import ConnectionProfile

if TYPE_CHECKING:
    from senserest.client.async_client import AsyncTransport
    from senserest.client.sync_client import SyncTransport

NTLM_HANDSHAKE_ENDPOINT = "/qrs/about"
NTLM_USER_AGENT = "Windows"


def _current_user() -> User:
    """The identity of the process owner, as the proxy will see it over NTLM."""
    try:
        user_id: Optional[str] = getpass.getuser()
    except (OSError, KeyError):
        user_id = None
    return User(directory=os.environ.get("USERDOMAIN"), id=user_id)


class NtlmUserViaProxy(ConnectionStrategy):
    """Windows authentication through the proxy.

    Args:
        credential: An :class:`httpx.Auth` implementing NTLM/Negotiate.
            ``None`` leaves the challenge to the transport.
    """

    requires_handshake = True

    def __init__(self, credential: Optional[httpx.Auth] = None) -> None:
        self.credential = credential

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.NTLM_USER_VIA_PROXY

    def configure(self, profile: ConnectionProfile) -> None:
        profile.configure(self.connection_type)
        profile.user = _current_user()
        profile.credential = self.credential
        profile.headers["User-Agent"] = NTLM_USER_AGENT

    def authenticate(self, profile: ConnectionProfile, transport: SyncTransport) -> None:
        raise_for_failure(transport.request("GET", NTLM_HANDSHAKE_ENDPOINT))

    async def authenticate_async(
        self, profile: ConnectionProfile, transport: AsyncTransport
    ) -> None:
        await raise_for_failure_async(await transport.request("GET", NTLM_HANDSHAKE_ENDPOINT))


class StaticHeaderUserViaProxy(ConnectionStrategy):
    """The proxy trusts a header naming the user.

    The user directory is configured on the proxy, so it is unknown here.
    """

    def __init__(self, user_id: str, header_name: str) -> None:
        self.user_id = user_id
        self.header_name = header_name

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.STATIC_HEADER_USER_VIA_PROXY

    def configure(self, profile: ConnectionProfile) -> None:
        if not self.user_id or not self.header_name:
            raise InvalidArgumentError("Static header connection requires a user id and a header name.")
        profile.configure(self.connection_type)
        profile.user = User(id=self.user_id)
        profile.headers[self.header_name] = self.user_id


class AnonymousViaProxy(ConnectionStrategy):
    """Anonymous access through a proxy that allows it."""

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.ANONYMOUS_VIA_PROXY

    def configure(self, profile: ConnectionProfile) -> None:
        profile.configure(self.connection_type)


class JwtViaProxy(ConnectionStrategy):
    """Bearer JWT validated by the proxy on every request."""

    def __init__(self, jwt: str) -> None:
        self.jwt = jwt

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.JWT_TOKEN_VIA_PROXY

    def configure(self, profile: ConnectionProfile) -> None:
        if not self.jwt:
            raise InvalidArgumentError("JWT must not be empty.")
        profile.configure(self.connection_type)
        profile.headers["Authorization"] = f"Bearer {self.jwt}"


class ExistingSessionViaProxy(ConnectionStrategy):
    """Reuse a proxy session created elsewhere, identified by its session cookie.

    Args:
        session_id: Value of the session cookie.
        cookie_name: Name of the session cookie, as configured on the
            virtual proxy (``X-Qlik-Session`` by default).
    """

    def __init__(self, session_id: str, cookie_name: str) -> None:
        self.session_id = session_id
        self.cookie_name = cookie_name

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.EXISTING_SESSION_VIA_PROXY

    def configure(self, profile: ConnectionProfile) -> None:
        if not self.session_id or not self.cookie_name:
            raise InvalidArgumentError("Existing session requires a session id and a cookie name.")
        profile.configure(self.connection_type)
        profile.set_cookie(self.cookie_name, self.session_id)
