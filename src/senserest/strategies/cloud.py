"""Connection modes for cloud tenants.

Cloud tenants do not use the xrfkey; cross-site request forgery protection
is the ``qlik-csrf-token`` header instead, which must echo the value of the
``_csrfToken`` session cookie.

Handshakes:

- **JWT** -- ``POST /login/jwt-session`` with the bearer JWT creates a
  session; the ``_csrfToken`` cookie it returns is installed as the CSRF
  header.  A response without that cookie is an authentication failure.
- **Client credentials** -- ``POST /oauth/token`` with HTTP Basic
  credentials returns an access token that is installed as the bearer
  token.  From then on the client behaves exactly like the API key mode.
"""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING

import httpx

from senserest.auth.base import ConnectionStrategy
from senserest.client.response import raise_for_failure, raise_for_failure_async
from senserest.client.shaping import CSRF_TOKEN_HEADER
from senserest.exceptions import AuthenticationFailedError, InvalidArgumentError, SenseRestError
from senserest.models import ConnectionType, QcsSessionInfo
from senserest.profile import ConnectionProfile

if TYPE_CHECKING:
    from senserest.client.async_client import AsyncTransport
    from senserest.client.sync_client import SyncTransport

JWT_SESSION_ENDPOINT = "/login/jwt-session"
TOKEN_ENDPOINT = "/oauth/token"
CSRF_TOKEN_COOKIE = "_csrfToken"

_TOKEN_REQUEST_BODY = json.dumps({"scope": "user_default", "grant_type": "client_credentials"})


def _bearer(profile: ConnectionProfile, token: str) -> None:
    profile.headers["Authorization"] = f"Bearer {token}"


class JwtViaQcs(ConnectionStrategy):
    """Create a tenant session from a signed JWT."""

    requires_handshake = True

    def __init__(self, jwt: str) -> None:
        self.jwt = jwt

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.JWT_TOKEN_VIA_QCS

    def configure(self, profile: ConnectionProfile) -> None:
        if not self.jwt:
            raise InvalidArgumentError("JWT must not be empty.")
        profile.configure(self.connection_type)
        profile.is_cloud = True
        _bearer(profile, self.jwt)

    def authenticate(self, profile: ConnectionProfile, transport: SyncTransport) -> None:
        raise_for_failure(transport.request("POST", JWT_SESSION_ENDPOINT, content=""))
        self._install_csrf_token(profile)

    async def authenticate_async(
        self, profile: ConnectionProfile, transport: AsyncTransport
    ) -> None:
        response = await transport.request("POST", JWT_SESSION_ENDPOINT, content="")
        await raise_for_failure_async(response)
        self._install_csrf_token(profile)

    @staticmethod
    def _install_csrf_token(profile: ConnectionProfile) -> None:
        token = profile.get_cookie(CSRF_TOKEN_COOKIE)
        if token is None:
            raise AuthenticationFailedError(
                f"Call to {JWT_SESSION_ENDPOINT} did not return a csrf token cookie."
            )
        profile.headers[CSRF_TOKEN_HEADER] = token


class ApiKeyViaQcs(ConnectionStrategy):
    """Authenticate every request with an API key as bearer token.

    Redirects are only followed within the tenant, so the key is never sent
    to another host.
    """

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.API_KEY_VIA_QCS

    def configure(self, profile: ConnectionProfile) -> None:
        if not self.api_key:
            raise InvalidArgumentError("API key must not be empty.")
        profile.configure(self.connection_type)
        profile.is_cloud = True
        _bearer(profile, self.api_key)


class ClientCredentialsViaQcs(ConnectionStrategy):
    """Exchange an OAuth client id and secret for an access token."""

    requires_handshake = True

    def __init__(self, client_id: str, client_secret: str) -> None:
        self.client_id = client_id
        self.client_secret = client_secret

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.CLIENT_CREDENTIALS_VIA_QCS

    def configure(self, profile: ConnectionProfile) -> None:
        if not self.client_id or not self.client_secret:
            raise InvalidArgumentError("Client credentials require a client id and a client secret.")
        profile.configure(self.connection_type)
        profile.is_cloud = True
        pair = f"{self.client_id}:{self.client_secret}".encode()
        profile.client_credentials = base64.b64encode(pair).decode("ascii")

    def authenticate(self, profile: ConnectionProfile, transport: SyncTransport) -> None:
        try:
            response = transport.request(
                "POST", TOKEN_ENDPOINT, content=_TOKEN_REQUEST_BODY, headers=self._basic(profile)
            )
            raise_for_failure(response)
            token = _access_token(response)
        except SenseRestError as exc:
            raise AuthenticationFailedError("Failed to retrieve access token.") from exc
        _bearer(profile, token)

    async def authenticate_async(
        self, profile: ConnectionProfile, transport: AsyncTransport
    ) -> None:
        try:
            response = await transport.request(
                "POST", TOKEN_ENDPOINT, content=_TOKEN_REQUEST_BODY, headers=self._basic(profile)
            )
            await raise_for_failure_async(response)
            token = _access_token(response)
        except SenseRestError as exc:
            raise AuthenticationFailedError("Failed to retrieve access token.") from exc
        _bearer(profile, token)

    @staticmethod
    def _basic(profile: ConnectionProfile) -> dict[str, str]:
        return {"Authorization": f"Basic {profile.client_credentials}"}


def _access_token(response: httpx.Response) -> str:
    try:
        token = response.json()["access_token"]
    except (ValueError, KeyError, TypeError) as exc:
        raise AuthenticationFailedError("Token response did not contain an access token.") from exc
    if not isinstance(token, str) or not token:
        raise AuthenticationFailedError("Token response did not contain an access token.")
    return token


class ExistingSessionViaQcs(ConnectionStrategy):
    """Reuse a tenant session captured by another client.

    See :attr:`~senserest.client.rest_client.RestClient.session_info`.
    """

    def __init__(self, session_info: QcsSessionInfo) -> None:
        self.session_info = session_info

    @property
    def connection_type(self) -> ConnectionType:
        return ConnectionType.EXISTING_SESSION_VIA_QCS

    def configure(self, profile: ConnectionProfile) -> None:
        info = self.session_info
        if not info.eas_sid or not info.eas_sid_sig or not info.session_token:
            raise InvalidArgumentError("Session info must carry eas.sid, eas.sid.sig and a session token.")
        profile.configure(self.connection_type)
        profile.is_cloud = True
        profile.set_cookie("eas.sid", info.eas_sid)
        profile.set_cookie("eas.sid.sig", info.eas_sid_sig)
        profile.headers[CSRF_TOKEN_HEADER] = info.session_token
