"""Authentication subsystem: connection strategies and the single-flight coordinator."""

from senserest.auth.base import ConnectionStrategy
from senserest.auth.coordinator import AuthenticationCoordinator, AuthState

__all__ = ["AuthState", "AuthenticationCoordinator", "ConnectionStrategy"]
