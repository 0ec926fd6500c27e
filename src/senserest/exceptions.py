"""Exception hierarchy for senserest.

All exceptions inherit from :class:`SenseRestError`.  The classes map onto
the three conditions a caller must be able to tell apart -- *never
configured*, *handshake failed* and *this call failed with a status* -- plus
a few argument, certificate and configuration errors raised during setup.

Subclass hierarchy::

    SenseRestError
    +-- ConnectionNotConfiguredError   no ``as_*`` call before the first request
    +-- CertificatesNotLoadedError     direct connection without client certificates
    +-- InvalidArgumentError           malformed xrfkey, identity or page size
    +-- AuthenticationFailedError      cached handshake failure (see ``__cause__``)
    +-- HttpFailureError               non-success status on a data call
    +-- NetworkError                   transport failure on a data call
    +-- ConfigError                    credential source / settings problems
"""

from __future__ import annotations


class SenseRestError(Exception):
    """Base exception for all senserest errors.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ConnectionNotConfiguredError(SenseRestError):
    """Raised when a call is issued before any connection type was configured."""

    def __init__(self, message: str = "Connection type not configured. Call one of the as_* methods first.") -> None:
        super().__init__(message)


class CertificatesNotLoadedError(SenseRestError):
    """Raised when a direct connection is requested without client certificates."""

    def __init__(self, message: str = "Client certificates not loaded.") -> None:
        super().__init__(message)


class InvalidArgumentError(SenseRestError, ValueError):
    """Raised for malformed arguments (xrfkey, identity, page size, reconfiguration)."""


class AuthenticationFailedError(SenseRestError):
    """Raised when the authentication handshake failed.

    The instance is cached by the
    :class:`~senserest.auth.coordinator.AuthenticationCoordinator` and the
    very same object is re-raised to every later caller.  The original
    failure is available as ``__cause__``.
    """


class HttpFailureError(SenseRestError):
    """Raised when the API answers a data call with a non-success status.

    Args:
        status_code: The HTTP status code.
        reason: The reason phrase sent by the server (may be empty).
        body: Best-effort response body, ``""`` when it could not be read.
    """

    def __init__(self, status_code: int, reason: str = "", body: str = "") -> None:
        message = f"{status_code}: {reason}" if reason else str(status_code)
        if body:
            message = f"{message}, {body}"
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body


class NetworkError(SenseRestError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused)."""


class ConfigError(SenseRestError):
    """Raised for configuration problems (bad credential sources, invalid settings)."""
