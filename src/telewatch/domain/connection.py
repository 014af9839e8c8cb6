"""Connection lifecycle for one logical live channel.

``OPEN`` means the channel can actually deliver: it is entered only on an explicit
open confirmation (a successful stream response) or on a received application
message. The looser ``display_connected`` flag is what a UI may show while a
connection is still being established.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from telewatch.domain.errors import InvalidTransitionError
from telewatch.domain.model import ConnectionState

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

_ALLOWED: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING, ConnectionState.OPEN}),
    ConnectionState.CONNECTING: frozenset({ConnectionState.OPEN, ConnectionState.ERROR}),
    ConnectionState.OPEN: frozenset({ConnectionState.ERROR}),
    ConnectionState.ERROR: frozenset({ConnectionState.CONNECTING, ConnectionState.OPEN}),
    ConnectionState.CLOSED: frozenset(),
}


class ConnectionStateMachine:
    def __init__(self, name: str) -> None:
        self.name = name
        self._state = ConnectionState.DISCONNECTED
        self._error: str | None = None
        self._listeners: list[Callable[[ConnectionState, ConnectionState], None]] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def error(self) -> str | None:
        """Transport error currently surfaced to the user, if any."""
        return self._error

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def is_closed(self) -> bool:
        return self._state is ConnectionState.CLOSED

    @property
    def display_connected(self) -> bool:
        return self._state in {ConnectionState.CONNECTING, ConnectionState.OPEN}

    def on_change(self, listener: Callable[[ConnectionState, ConnectionState], None]) -> None:
        self._listeners.append(listener)

    def begin_connect(self) -> None:
        self._move(ConnectionState.CONNECTING)

    def confirm_open(self) -> None:
        """Record an explicit open confirmation from the transport."""

        if self._state is ConnectionState.OPEN:
            return
        self._move(ConnectionState.OPEN)
        self._error = None

    def message_received(self) -> None:
        """Any well-formed application message proves the channel is delivering."""

        if self._state in {ConnectionState.CONNECTING, ConnectionState.ERROR}:
            self._move(ConnectionState.OPEN)
        if self._state is ConnectionState.OPEN:
            self._error = None

    def heartbeat(self) -> None:
        self.message_received()

    def fail(self, message: str) -> None:
        if self._state is ConnectionState.CLOSED:
            return
        self._error = message
        if self._state is ConnectionState.ERROR:
            return
        if self._state is ConnectionState.DISCONNECTED:
            # Never got as far as connecting; report through the connecting edge.
            self._move(ConnectionState.CONNECTING)
        self._move(ConnectionState.ERROR)

    def close(self) -> None:
        """Enter the terminal state. Safe to call repeatedly."""

        if self._state is ConnectionState.CLOSED:
            return
        previous = self._state
        self._state = ConnectionState.CLOSED
        self._error = None
        log.debug("%s: %s -> %s", self.name, previous, ConnectionState.CLOSED)
        self._notify(previous, ConnectionState.CLOSED)

    def _move(self, target: ConnectionState) -> None:
        if self._state is target:
            return
        if target not in _ALLOWED[self._state]:
            raise InvalidTransitionError(
                f"{self.name}: cannot move from {self._state} to {target}"
            )
        previous = self._state
        self._state = target
        log.debug("%s: %s -> %s", self.name, previous, target)
        self._notify(previous, target)

    def _notify(self, previous: ConnectionState, current: ConnectionState) -> None:
        for listener in tuple(self._listeners):
            listener(previous, current)
