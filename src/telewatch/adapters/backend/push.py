"""Server-push subscriptions over server-sent events.

A ``PushSession`` owns one streaming connection and reconnects with exponential
backoff. A ``PushChannel`` multiplexes any number of listeners over at most one
session per endpoint.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from telewatch.config import StreamConfig
from telewatch.domain.connection import ConnectionStateMachine
from telewatch.domain.errors import ParseError, RequestError, TransportError
from telewatch.domain.model import ConnectionState
from telewatch.domain.subscription import ListenerRegistry, SubscriptionHandle

from .client import extract_error_message
from .sse import iter_sse_events

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from contextlib import AbstractAsyncContextManager

    import httpx

    from .sse import SseEvent

log = getLogger(__name__)


class StreamOpener(Protocol):
    def __call__(self, path: str) -> AbstractAsyncContextManager[httpx.Response]: ...


class StreamEnded(TransportError):
    """The server closed the stream without an error."""


class PushSession[M]:
    def __init__(
        self,
        path: str,
        *,
        opener: StreamOpener,
        decode: Callable[[SseEvent], M | None],
        on_message: Callable[[M], None],
        stream_config: StreamConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.path = path
        self.state = ConnectionStateMachine(path)
        self._opener = opener
        self._decode = decode
        self._on_message = on_message
        self._stream_config = stream_config or StreamConfig()
        self._sleep = sleep or asyncio.sleep
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._closed:
            raise RuntimeError(f"Push session for {self.path} is closed")
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"push:{self.path}"
        )

    def close(self) -> None:
        """Stop delivery immediately and cancel the connection task. Idempotent."""

        if self._closed:
            return
        self._closed = True
        self.state.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        attempt = 0
        while not self._closed:
            self.state.begin_connect()
            try:
                await self._consume()
            except (TransportError, RequestError) as exc:
                if self._closed:
                    return
                log.warning("Push stream %s interrupted: %s", self.path, exc)
                self.state.fail(str(exc))
            else:
                return
            attempt += 1
            delay = self._stream_config.delay_for(attempt)
            log.debug("Reconnecting to %s in %.1fs (attempt %s)", self.path, delay, attempt)
            await self._sleep(delay)

    async def _consume(self) -> None:
        async with self._opener(self.path) as response:
            if not response.is_success:
                await response.aread()
                raise RequestError(extract_error_message(response), status=response.status_code)
            if self._closed:
                return
            self.state.confirm_open()
            async for event in iter_sse_events(response):
                if self._closed:
                    return
                self._deliver(event)
        raise StreamEnded(f"Stream {self.path} ended")

    def _deliver(self, event: SseEvent) -> None:
        try:
            message = self._decode(event)
        except ParseError as exc:
            log.warning("Dropping malformed message on %s: %s", self.path, exc)
            return
        self.state.message_received()
        if message is None:
            return
        self._on_message(message)


class PushChannel[M]:
    """One logical push subscription shared by every listener of an endpoint."""

    def __init__(
        self,
        path: str,
        *,
        opener: StreamOpener,
        decode: Callable[[SseEvent], M | None],
        stream_config: StreamConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.path = path
        self._opener = opener
        self._decode = decode
        self._stream_config = stream_config
        self._sleep = sleep or asyncio.sleep
        self._session: PushSession[M] | None = None
        self._listeners: ListenerRegistry[M] = ListenerRegistry(
            on_first=self._open_session,
            on_empty=self._close_session,
        )

    @property
    def session(self) -> PushSession[M] | None:
        return self._session

    @property
    def state(self) -> ConnectionState:
        if self._session is None:
            return ConnectionState.DISCONNECTED
        return self._session.state.state

    @property
    def error(self) -> str | None:
        return None if self._session is None else self._session.state.error

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, callback: Callable[[M], None]) -> SubscriptionHandle:
        return self._listeners.add(callback)

    def restart(self) -> None:
        """Tear down the current session and open a fresh one for the same listeners."""

        self._close_session()
        if len(self._listeners):
            self._open_session()

    def close(self) -> None:
        self._listeners.clear()
        self._close_session()

    async def aclose(self) -> None:
        session = self._session
        self.close()
        if session is not None:
            await session.wait_closed()

    def _open_session(self) -> None:
        self._close_session()
        session = PushSession(
            self.path,
            opener=self._opener,
            decode=self._decode,
            on_message=self._listeners.notify,
            stream_config=self._stream_config,
            sleep=self._sleep,
        )
        self._session = session
        session.start()

    def _close_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.close()
