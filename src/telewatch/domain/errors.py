"""Error taxonomy shared by the live telemetry core.

Transport and parse errors are absorbed by the adapter that observes them; request errors
propagate to the immediate caller's error slot only.
"""

from __future__ import annotations


class TelewatchError(RuntimeError):
    """Base class for telewatch runtime errors."""


class TransportError(TelewatchError):
    """Raised when a connection to the backend is lost or cannot be established."""


class RequestError(TelewatchError):
    """Raised for non-2xx responses or response bodies that fail validation."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class ParseError(TelewatchError):
    """Raised when an inbound message payload is structurally malformed."""

    def __init__(self, message: str, *, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class InvalidTransitionError(TelewatchError):
    """Raised when a connection state change is not allowed from the current state."""
