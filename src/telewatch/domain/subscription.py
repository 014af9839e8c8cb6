"""Explicit subscription handles and a listener registry that multiplexes consumers."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

log = getLogger(__name__)


class SubscriptionHandle:
    """Owns the teardown of one subscription.

    ``release`` runs the teardown exactly once no matter how often it is called.
    """

    def __init__(self, teardown: Callable[[], None]) -> None:
        self._teardown: Callable[[], None] | None = teardown

    @property
    def released(self) -> bool:
        return self._teardown is None

    def release(self) -> None:
        teardown, self._teardown = self._teardown, None
        if teardown is not None:
            teardown()

    def __enter__(self) -> SubscriptionHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class ListenerRegistry[T]:
    """Fan out values to registered callbacks.

    ``on_first`` fires when the registry goes from zero to one listener and
    ``on_empty`` when the last listener is released, so a single shared resource
    (timer, connection) can be started and stopped with its consumers.
    """

    def __init__(
        self,
        *,
        on_first: Callable[[], None] | None = None,
        on_empty: Callable[[], None] | None = None,
    ) -> None:
        self._listeners: dict[int, Callable[[T], None]] = {}
        self._next_key = 0
        self._on_first = on_first
        self._on_empty = on_empty

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, callback: Callable[[T], None]) -> SubscriptionHandle:
        key = self._next_key
        self._next_key += 1
        first = not self._listeners
        self._listeners[key] = callback
        if first and self._on_first is not None:
            self._on_first()
        return SubscriptionHandle(lambda: self._remove(key))

    def notify(self, value: T) -> None:
        for key, callback in tuple(self._listeners.items()):
            # A listener released by an earlier callback in this round must not fire.
            if key not in self._listeners:
                continue
            try:
                callback(value)
            except Exception:
                log.exception("Listener raised while handling an update")

    def clear(self) -> None:
        had_listeners = bool(self._listeners)
        self._listeners.clear()
        if had_listeners and self._on_empty is not None:
            self._on_empty()

    def _remove(self, key: int) -> None:
        if self._listeners.pop(key, None) is None:
            return
        if not self._listeners and self._on_empty is not None:
            self._on_empty()
