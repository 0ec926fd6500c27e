"""Connection profile -- everything needed to shape an HTTP call.

A :class:`ConnectionProfile` is created together with a
:class:`~senserest.client.rest_client.RestClient` and mutated only while the
client is being set up (the ``as_*`` connection calls) or by the
authentication handshake, inside the coordinator's gate.  Derived clients
get a :meth:`~ConnectionProfile.clone`.

Every field declares how it behaves when a profile is cloned, through the
``ownership`` key of its dataclass field metadata:

* ``owned`` -- copy-on-derive.  Each clone gets its own deep copy, so a
  derived client can override a header without touching its parent.
* ``shared`` -- shared by reference.  The cookie jar is internally locked
  and is meant to be shared by all clients of one logical connection;
  certificates and credentials are immutable.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field, fields
from http.cookiejar import CookieJar
from typing import Any, Optional

import httpx

from senserest.certificates import CertificateSet
from senserest.exceptions import InvalidArgumentError
from senserest.models import ConnectionType, QcsSessionInfo, User

OWNED = "owned"
SHARED = "shared"

DEFAULT_CONTENT_TYPE = "application/json"

_XRFKEY_PATTERN = re.compile(r"[A-Za-z0-9]{16}")


def owned(**kwargs: Any) -> Any:
    """Declare a profile field that is deep-copied on clone."""
    return field(metadata={"ownership": OWNED}, **kwargs)


def shared(**kwargs: Any) -> Any:
    """Declare a profile field that clones keep by reference."""
    return field(metadata={"ownership": SHARED}, **kwargs)


def validate_xrfkey(key: str) -> str:
    """Return *key* if it is exactly 16 ASCII letters or digits.

    Raises:
        InvalidArgumentError: Otherwise.
    """
    if len(key) != 16:
        raise InvalidArgumentError("Xrfkey must be of length 16.")
    if not _XRFKEY_PATTERN.fullmatch(key):
        raise InvalidArgumentError("Xrfkey contains illegal character.")
    return key


@dataclass
class ConnectionProfile:
    """Connection parameters and session artifacts of one client."""

    base_url: str = owned()
    connection_type: ConnectionType = owned(default=ConnectionType.UNDEFINED)
    user: User = owned(default_factory=User)
    headers: dict[str, str] = owned(default_factory=dict)
    default_arguments: dict[str, str] = owned(default_factory=dict)
    content_type: str = owned(default=DEFAULT_CONTENT_TYPE)
    is_cloud: bool = owned(default=False)
    xrfkey: Optional[str] = owned(default=None)
    timeout: Optional[float] = owned(default=None)
    proxy: Optional[str] = owned(default=None)
    custom_user_agent: Optional[str] = owned(default=None)
    certificate_validation: bool = owned(default=True)
    client_credentials: Optional[str] = owned(default=None)

    cookies: CookieJar = shared(default_factory=CookieJar)
    certificates: Optional[CertificateSet] = shared(default=None)
    credential: Optional[httpx.Auth] = shared(default=None)

    @property
    def host(self) -> str:
        return httpx.URL(self.base_url).host

    @property
    def is_configured(self) -> bool:
        return self.connection_type != ConnectionType.UNDEFINED

    def configure(self, connection_type: ConnectionType) -> None:
        """Set the connection type.  Allowed once per profile.

        Raises:
            InvalidArgumentError: If a connection type was already set.
        """
        if self.is_configured:
            raise InvalidArgumentError(
                f"Connection already configured as {self.connection_type.value}."
            )
        self.connection_type = connection_type

    def clone(self) -> ConnectionProfile:
        """Copy owned fields, keep shared fields by reference."""
        values: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.metadata.get("ownership") == OWNED:
                value = copy.deepcopy(value)
            values[f.name] = value
        return ConnectionProfile(**values)

    def set_xrfkey(self, key: str) -> None:
        self.xrfkey = validate_xrfkey(key)

    def set_port(self, port: int) -> None:
        self.base_url = str(httpx.URL(self.base_url).copy_with(port=port))

    # ------------------------------------------------------------------ #
    # Cookies
    # ------------------------------------------------------------------ #

    def set_cookie(self, name: str, value: str) -> None:
        """Add a cookie for the base host to the shared jar."""
        host = self.host
        domain = host if "." in host else f"{host}.local"
        httpx.Cookies(self.cookies).set(name, value, domain=domain)

    def get_cookie(self, name: str) -> Optional[str]:
        """Return the value of cookie *name* sent to the base host, if any."""
        host = self.host
        for cookie in self.cookies:
            if cookie.name == name and _domain_matches(host, cookie.domain):
                return cookie.value
        return None

    def cookie_values(self) -> dict[str, str]:
        host = self.host
        return {
            cookie.name: cookie.value or ""
            for cookie in self.cookies
            if _domain_matches(host, cookie.domain)
        }

    @property
    def session_info(self) -> QcsSessionInfo:
        return QcsSessionInfo(
            eas_sid=self.get_cookie("eas.sid"),
            eas_sid_sig=self.get_cookie("eas.sid.sig"),
            session_token=self.get_cookie("_csrfToken"),
        )


def _domain_matches(host: str, domain: str) -> bool:
    # The cookie jar stores dotless hosts such as "localhost" as "localhost.local".
    domain = domain.lstrip(".")
    return domain in (host, f"{host}.local") or host.endswith("." + domain)
