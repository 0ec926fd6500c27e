"""Request shaping -- turn a profile and an endpoint into URL, headers and client options.

Shaping is the same for the blocking and the async transport, so it lives
here rather than in either of them.  Headers are rebuilt for every request
from the current profile, which means a CSRF header or bearer token written
by a handshake is picked up by the very next call.
"""

from __future__ import annotations

import secrets
import string
from typing import Any, Mapping, Optional
from urllib.parse import quote

import httpx

from senserest import __version__
from senserest.profile import ConnectionProfile

LIBRARY_USER_AGENT = f"senserest/{__version__}"

XRFKEY_HEADER = "X-Qlik-Xrfkey"
XRFKEY_PARAM = "xrfkey"
XRFKEY_ALPHABET = string.ascii_letters + string.digits
XRFKEY_LENGTH = 16

CSRF_TOKEN_HEADER = "qlik-csrf-token"


def generate_xrfkey() -> str:
    """Return a random 16 character key over ``[A-Za-z0-9]``."""
    return "".join(secrets.choice(XRFKEY_ALPHABET) for _ in range(XRFKEY_LENGTH))


def build_url(base_url: str, endpoint: str) -> str:
    """Join *base_url* and *endpoint* with exactly one slash between them.

    A query string on *endpoint* is kept as is.
    """
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"


def append_query(url: str, name: str, value: str) -> str:
    """Append ``name=value`` to *url*, with ``&`` if it already has a query."""
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{quote(name, safe='')}={quote(value, safe='')}"


class RequestShaper:
    """Build URLs and headers for requests issued under *profile*.

    When the profile carries no xrfkey, the shaper generates one on creation
    and sends it with every request it shapes.
    """

    def __init__(self, profile: ConnectionProfile) -> None:
        self._profile = profile
        self._generated_xrfkey = generate_xrfkey()

    @property
    def xrfkey(self) -> str:
        return self._profile.xrfkey or self._generated_xrfkey

    @property
    def uses_xrfkey(self) -> bool:
        return not self._profile.is_cloud

    def url(self, endpoint: str) -> str:
        url = build_url(self._profile.base_url, endpoint)
        for name, value in self._profile.default_arguments.items():
            url = append_query(url, name, value)
        if self.uses_xrfkey:
            url = append_query(url, XRFKEY_PARAM, self.xrfkey)
        return url

    def user_agent(self) -> str:
        custom = self._profile.custom_user_agent
        return f"{custom} {LIBRARY_USER_AGENT}" if custom else LIBRARY_USER_AGENT

    def headers(
        self,
        extra: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        has_body: bool = False,
    ) -> httpx.Headers:
        """Return the headers for one request.

        Precedence, lowest first: library user agent and xrfkey, profile
        headers, *extra*.  ``Content-Type`` is set only for requests with a
        body, from *content_type* or the profile default.
        """
        headers = httpx.Headers({"User-Agent": self.user_agent()})
        if self.uses_xrfkey:
            headers[XRFKEY_HEADER] = self.xrfkey
        headers.update(self._profile.headers)
        if extra:
            headers.update(extra)
        if has_body and "Content-Type" not in headers:
            headers["Content-Type"] = content_type or self._profile.content_type
        return headers


def client_options(profile: ConnectionProfile) -> dict[str, Any]:
    """Keyword arguments for :class:`httpx.Client` / :class:`httpx.AsyncClient`.

    Redirects are never followed by httpx; the transports follow a single
    ``301`` on GET themselves.  The profile's cookie jar is passed through
    unchanged so every client of one connection reads and writes the same jar.
    """
    verify: Any = profile.certificate_validation
    if profile.certificates is not None:
        verify = profile.certificates.ssl_context(validate=profile.certificate_validation)

    options: dict[str, Any] = {
        "cookies": profile.cookies,
        "verify": verify,
        "timeout": httpx.Timeout(profile.timeout),
        "follow_redirects": False,
    }
    if profile.proxy:
        options["proxy"] = profile.proxy
    if profile.credential is not None:
        options["auth"] = profile.credential
    return options
