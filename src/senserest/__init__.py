"""senserest -- REST client for Qlik Sense deployments and Qlik Cloud tenants.

The client supports ten connection modes, from client certificates against
the repository service to API keys against a cloud tenant.  Modes that need
a login round trip perform it lazily, exactly once, the first time the
client is used -- no matter how many threads or tasks call it at once.

Typical usage::

    from senserest import RestClient

    client = RestClient("https://sense.example.com")
    client.as_ntlm_user_via_proxy()
    apps = client.get_json("/qrs/app/full")

Modules:
    client: :class:`RestClient` and the sync/async transports.
    auth: Connection strategy base class and the authentication coordinator.
    strategies: The ten connection modes.
    profile: Per-client connection profile.
    certificates: Client certificate loading for direct connections.
    models: Pydantic models shared across the package.
    config: Settings from the environment and credential resolution.
    debug: Diagnostics observers.
    exceptions: Exception hierarchy.
"""

__version__ = "0.1.0"

from senserest.certificates import CertificateSet, load_certificates_from_directory
from senserest.client import RestClient
from senserest.debug import ClientObserver, DebugConsole, LoggingObserver, NullObserver
from senserest.exceptions import (
    AuthenticationFailedError,
    CertificatesNotLoadedError,
    ConfigError,
    ConnectionNotConfiguredError,
    HttpFailureError,
    InvalidArgumentError,
    NetworkError,
    SenseRestError,
)
from senserest.models import ClientSettings, ConnectionType, QcsSessionInfo, User

__all__ = [
    "AuthenticationFailedError",
    "CertificateSet",
    "CertificatesNotLoadedError",
    "ClientObserver",
    "ClientSettings",
    "ConfigError",
    "ConnectionNotConfiguredError",
    "ConnectionType",
    "DebugConsole",
    "HttpFailureError",
    "InvalidArgumentError",
    "LoggingObserver",
    "NetworkError",
    "NullObserver",
    "QcsSessionInfo",
    "RestClient",
    "SenseRestError",
    "User",
    "load_certificates_from_directory",
]
