"""Periodic polling channel shared by all of its consumers."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from telewatch.domain.connection import ConnectionStateMachine
from telewatch.domain.errors import RequestError, TransportError
from telewatch.domain.model import ConnectionState
from telewatch.domain.subscription import ListenerRegistry, SubscriptionHandle

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)


class PollingChannel[T]:
    """Fetch a full listing on a fixed interval and fan it out to listeners.

    Exactly one timer runs while at least one listener is subscribed. A failed
    tick is logged and skipped; listeners keep whatever they last received.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        *,
        interval_seconds: float,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self._fetch = fetch
        self._sleep = sleep or asyncio.sleep
        self._task: asyncio.Task[None] | None = None
        self._machine: ConnectionStateMachine | None = None
        self._listeners: ListenerRegistry[T] = ListenerRegistry(
            on_first=self._start,
            on_empty=self._stop,
        )

    @property
    def state(self) -> ConnectionState:
        if self._machine is None:
            return ConnectionState.DISCONNECTED
        return self._machine.state

    @property
    def timer_active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, callback: Callable[[T], None]) -> SubscriptionHandle:
        return self._listeners.add(callback)

    def close(self) -> None:
        self._listeners.clear()
        self._stop()

    async def aclose(self) -> None:
        task = self._task
        self.close()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _start(self) -> None:
        if self.timer_active:
            return
        self._machine = ConnectionStateMachine(self.name)
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"poll:{self.name}"
        )
        self._machine.confirm_open()
        log.debug("Polling %s every %.1fs", self.name, self.interval_seconds)

    def _stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        if self._machine is not None:
            self._machine.close()

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            try:
                value = await self._fetch()
            except (TransportError, RequestError) as exc:
                log.warning("Poll of %s failed: %s", self.name, exc)
                continue
            self._listeners.notify(value)
