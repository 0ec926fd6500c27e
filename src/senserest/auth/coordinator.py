"""Single-flight authentication coordinator.

:class:`AuthenticationCoordinator` runs a client's authentication procedure
lazily, the first time a data call needs it, and at most once over its
lifetime.  Concurrent callers -- threads and asyncio tasks alike -- wait on
the same gate; when the procedure succeeds they all proceed, when it fails
they all receive the same cached :class:`~senserest.exceptions.AuthenticationFailedError`.

The gate is a :class:`threading.Lock`.  The blocking entry point acquires
it normally.  The async entry point polls a non-blocking acquire and yields
to the event loop between attempts, so waiting tasks never block the loop
and a task cancelled while waiting never holds the gate.

State machine::

    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED
                                      -> FAILED          (sticky)
"""

from __future__ import annotations

import asyncio
import enum
import threading
from typing import Awaitable, Callable, NoReturn, Optional

from senserest.exceptions import AuthenticationFailedError

DEFAULT_POLL_INTERVAL = 0.01


class AuthState(str, enum.Enum):
    """Observable state of an :class:`AuthenticationCoordinator`."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class AuthenticationCoordinator:
    """Run an authentication procedure exactly once, on demand.

    Args:
        procedure: Zero-argument callable performing the handshake.  Used by
            :meth:`ensure_authenticated`.
        async_procedure: Zero-argument coroutine function performing the same
            handshake.  Used by :meth:`ensure_authenticated_async`.
        authenticated: Start in the ``AUTHENTICATED`` state.  Used for modes
            without a handshake and for clients derived from an already
            authenticated parent.
        poll_interval: Seconds an async waiter sleeps between attempts to
            take the gate.

    Example::

        coordinator = AuthenticationCoordinator(login, login_async)
        coordinator.ensure_authenticated()   # runs login()
        coordinator.ensure_authenticated()   # returns immediately
    """

    def __init__(
        self,
        procedure: Callable[[], None],
        async_procedure: Callable[[], Awaitable[None]],
        authenticated: bool = False,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._procedure = procedure
        self._async_procedure = async_procedure
        self._poll_interval = poll_interval
        self._gate = threading.Lock()
        self._authenticated = authenticated
        self._authenticating = False
        self._failure: Optional[AuthenticationFailedError] = None

    @classmethod
    def seeded_from(
        cls,
        parent: AuthenticationCoordinator,
        procedure: Callable[[], None],
        async_procedure: Callable[[], Awaitable[None]],
    ) -> AuthenticationCoordinator:
        """Create a coordinator for a derived client.

        The new coordinator starts authenticated iff *parent* is authenticated
        right now.  Otherwise it runs *procedure* independently on first use;
        it never shares the parent's gate or cached failure.
        """
        return cls(
            procedure,
            async_procedure,
            authenticated=parent.is_authenticated,
            poll_interval=parent._poll_interval,
        )

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @property
    def failure(self) -> Optional[AuthenticationFailedError]:
        """The cached handshake failure, or ``None``."""
        return self._failure

    @property
    def state(self) -> AuthState:
        if self._authenticated:
            return AuthState.AUTHENTICATED
        if self._failure is not None:
            return AuthState.FAILED
        if self._authenticating:
            return AuthState.AUTHENTICATING
        return AuthState.UNAUTHENTICATED

    def mark_authenticated(self) -> None:
        """Force the ``AUTHENTICATED`` state without running the procedure."""
        self._authenticated = True

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def ensure_authenticated(self) -> None:
        """Block until the client is authenticated.

        Raises:
            AuthenticationFailedError: The procedure failed, now or earlier.
                Every caller receives the same instance.
        """
        if self._authenticated:
            return
        with self._gate:
            if self._authenticated:
                return
            self._raise_cached_failure()
            self._authenticating = True
            try:
                self._procedure()
            except Exception as exc:
                self._fail(exc)
            finally:
                self._authenticating = False
            self._authenticated = True

    async def ensure_authenticated_async(self) -> None:
        """Non-blocking twin of :meth:`ensure_authenticated`.

        Shares the gate and state with the blocking entry point, so threads
        and tasks of the same client single-flight together.

        Raises:
            AuthenticationFailedError: The procedure failed, now or earlier.
        """
        if self._authenticated:
            return
        while not self._gate.acquire(blocking=False):
            await asyncio.sleep(self._poll_interval)
        try:
            if self._authenticated:
                return
            self._raise_cached_failure()
            self._authenticating = True
            try:
                await self._async_procedure()
            except Exception as exc:
                self._fail(exc)
            finally:
                self._authenticating = False
            self._authenticated = True
        finally:
            self._gate.release()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _raise_cached_failure(self) -> None:
        if self._failure is not None:
            raise self._failure

    def _fail(self, exc: Exception) -> NoReturn:
        if isinstance(exc, AuthenticationFailedError):
            self._failure = exc
            raise exc
        failure = AuthenticationFailedError(f"Authentication failed: {exc}")
        self._failure = failure
        raise failure from exc
