"""The ten connection modes.

Each mode is a :class:`~senserest.auth.base.ConnectionStrategy`:

- :mod:`senserest.strategies.direct` -- client certificate straight to the
  repository service.
- :mod:`senserest.strategies.proxy` -- NTLM, static header, anonymous, JWT
  and existing session through a virtual proxy.
- :mod:`senserest.strategies.cloud` -- JWT, API key, client credentials and
  existing session against a cloud tenant.
"""

from senserest.strategies.cloud import (
    ApiKeyViaQcs,
    ClientCredentialsViaQcs,
    ExistingSessionViaQcs,
    JwtViaQcs,
)
from senserest.strategies.direct import DirectConnection
from senserest.strategies.proxy import (
    AnonymousViaProxy,
    ExistingSessionViaProxy,
    JwtViaProxy,
    NtlmUserViaProxy,
    StaticHeaderUserViaProxy,
)

__all__ = [
    "AnonymousViaProxy",
    "ApiKeyViaQcs",
    "ClientCredentialsViaQcs",
    "DirectConnection",
    "ExistingSessionViaProxy",
    "ExistingSessionViaQcs",
    "JwtViaProxy",
    "JwtViaQcs",
    "NtlmUserViaProxy",
    "StaticHeaderUserViaProxy",
]
