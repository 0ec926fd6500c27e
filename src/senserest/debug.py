"""Diagnostics observers for :class:`~senserest.client.rest_client.RestClient`.

A client reports what it does -- each call, each response size and status,
handshake progress and failures -- to a :class:`ClientObserver` injected at
construction time.  Nothing is global: two clients can log to different
places, and a client created without an observer logs nowhere.

Three observers ship with the package:

* :class:`NullObserver` -- the default, discards everything.
* :class:`DebugConsole` -- dimmed lines on stderr through a Rich
  :class:`~rich.console.Console`.  Honours ``NO_COLOR`` and ``TERM=dumb``.
* :class:`LoggingObserver` -- forwards to a :mod:`logging` logger, for
  applications that already configure logging.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Protocol, runtime_checkable

from rich.console import Console
from rich.markup import escape


@runtime_checkable
class ClientObserver(Protocol):
    """Anything with a ``log(message)`` method."""

    def log(self, message: str) -> None: ...


class NullObserver:
    """Observer that discards all messages."""

    def log(self, message: str) -> None:
        pass


class DebugConsole:
    """Print client diagnostics to stderr.

    Args:
        console: Console to print to.  Defaults to a stderr console.
        prefix: Text shown in front of every line.
        no_color: Disable Rich markup.  Defaults to ``True`` when
            ``NO_COLOR`` is set or ``TERM=dumb``.

    Example::

        client = RestClient("https://sense.example.com", observer=DebugConsole())
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        prefix: str = "senserest",
        no_color: Optional[bool] = None,
    ) -> None:
        self._no_color = _should_disable_color() if no_color is None else no_color
        self._console = console or Console(
            file=sys.stderr,
            stderr=True,
            no_color=self._no_color,
            highlight=False,
        )
        self._prefix = prefix

    def log(self, message: str) -> None:
        line = f"[{self._prefix}] {message}"
        if self._no_color:
            self._console.print(line, markup=False)
        else:
            self._console.print(f"[dim]{escape(line)}[/dim]")


class LoggingObserver:
    """Forward client diagnostics to a :class:`logging.Logger`."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.DEBUG) -> None:
        self._logger = logger or logging.getLogger("senserest")
        self._level = level

    def log(self, message: str) -> None:
        self._logger.log(self._level, message)


def _should_disable_color() -> bool:
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"
