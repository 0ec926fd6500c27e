"""Abstract base class for connection strategies.

A :class:`ConnectionStrategy` describes one connection mode: which
headers, cookies and credentials it installs on a
:class:`~senserest.profile.ConnectionProfile` when the client is set up,
and which handshake (if any) it performs the first time the client is used.

To add a connection mode, subclass :class:`ConnectionStrategy`, return the
mode from :attr:`~ConnectionStrategy.connection_type`, implement
:meth:`~ConnectionStrategy.configure` and -- for modes that talk to the
server before the first data call -- set :attr:`requires_handshake` and
override :meth:`~ConnectionStrategy.authenticate` and
:meth:`~ConnectionStrategy.authenticate_async`.

See Also:
    :mod:`senserest.auth.coordinator` for how the handshake is run exactly once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from senserest.models import ConnectionType

if TYPE_CHECKING:
    from senserest.client.async_client import AsyncTransport
    from senserest.client.sync_client import SyncTransport
    from senserest.profile import ConnectionProfile


class ConnectionStrategy(ABC):
    """Abstract base class for the connection modes.

    Strategies are stateless apart from the arguments they were created
    with; everything a handshake learns is written to the profile.
    """

    #: Whether the mode performs a handshake before the first data call.
    requires_handshake: bool = False

    @property
    @abstractmethod
    def connection_type(self) -> ConnectionType:
        """Return the :class:`~senserest.models.ConnectionType` this strategy sets up."""
        ...

    @abstractmethod
    def configure(self, profile: ConnectionProfile) -> None:
        """Install the mode's headers, cookies and credentials on *profile*.

        Implementations must call ``profile.configure(self.connection_type)``
        so a profile is configured at most once.

        Raises:
            InvalidArgumentError: On malformed arguments or reconfiguration.
        """
        ...

    def authenticate(self, profile: ConnectionProfile, transport: SyncTransport) -> None:
        """Run the handshake over *transport*.  No-op for modes without one.

        Called at most once per coordinator, with the coordinator's gate held.
        Any exception raised here becomes the coordinator's cached failure.
        """

    async def authenticate_async(
        self, profile: ConnectionProfile, transport: AsyncTransport
    ) -> None:
        """Async twin of :meth:`authenticate`."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.connection_type.value}>"
