"""Pydantic models and enums shared across senserest.

* :class:`ConnectionType` -- the ten connection modes plus ``UNDEFINED``.
* :class:`User` -- the identity a client acts as.
* :class:`QcsSessionInfo` -- a snapshot of a cloud tenant session that can be
  handed to another client via
  :meth:`~senserest.client.rest_client.RestClient.as_existing_session_via_qcs`.
* :class:`ClientSettings` -- client-wide settings, usually loaded from the
  environment by :func:`~senserest.config.load_settings`.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ConnectionType(str, enum.Enum):
    """Connection modes supported by :class:`~senserest.client.rest_client.RestClient`."""

    UNDEFINED = "undefined"
    DIRECT_CONNECTION = "direct_connection"
    NTLM_USER_VIA_PROXY = "ntlm_user_via_proxy"
    STATIC_HEADER_USER_VIA_PROXY = "static_header_user_via_proxy"
    ANONYMOUS_VIA_PROXY = "anonymous_via_proxy"
    JWT_TOKEN_VIA_PROXY = "jwt_token_via_proxy"
    JWT_TOKEN_VIA_QCS = "jwt_token_via_qcs"
    API_KEY_VIA_QCS = "api_key_via_qcs"
    CLIENT_CREDENTIALS_VIA_QCS = "client_credentials_via_qcs"
    EXISTING_SESSION_VIA_PROXY = "existing_session_via_proxy"
    EXISTING_SESSION_VIA_QCS = "existing_session_via_qcs"


class User(BaseModel):
    """Identity of the user a client acts as.

    ``directory`` is ``None`` when the directory is decided by the proxy and
    therefore unknown to the client (static header and JWT modes).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    directory: Optional[str] = Field(default=None, alias="userDirectory")
    id: Optional[str] = Field(default=None, alias="userId")

    def __str__(self) -> str:
        return f"{self.directory or 'unknown'}\\{self.id or 'unknown'}"


class QcsSessionInfo(BaseModel):
    """Cookies and CSRF token that make up a cloud tenant session."""

    model_config = ConfigDict(frozen=True)

    eas_sid: Optional[str] = None
    eas_sid_sig: Optional[str] = None
    session_token: Optional[str] = None


class ClientSettings(BaseModel):
    """Client-wide settings applied by :meth:`RestClient.from_settings`."""

    url: str = Field(description="Base address of the platform")
    timeout: Optional[float] = Field(
        default=None, description="Request timeout in seconds, None for no timeout"
    )
    verify_ssl: bool = Field(default=True, description="Verify server certificates")
    proxy: Optional[str] = Field(default=None, description="Outbound proxy URL")
    user_agent: Optional[str] = Field(
        default=None, description="Custom user agent identifying the application"
    )
    api_key_source: Optional[str] = Field(
        default=None,
        description="Credential source (env:NAME, file:PATH or prompt) of a tenant API key",
    )
