from __future__ import annotations

import asyncio

from telewatch.adapters.backend import PollingChannel
from telewatch.domain.errors import TransportError
from telewatch.domain.model import ConnectionState
from tests.helpers.telemetry import ManualTicker, settle


class CountingFetch:
    def __init__(self, *results: object) -> None:
        self.results = list(results)
        self.calls = 0

    async def __call__(self) -> list[str]:
        self.calls += 1
        result = self.results.pop(0) if self.results else [f"tick-{self.calls}"]
        if isinstance(result, Exception):
            raise result
        return result  # type: ignore[return-value]


def test_two_consumers_share_one_timer() -> None:
    async def run() -> None:
        ticker = ManualTicker()
        fetch = CountingFetch()
        channel: PollingChannel[list[str]] = PollingChannel(
            "alerts", fetch, interval_seconds=2.0, sleep=ticker
        )
        first: list[list[str]] = []
        second: list[list[str]] = []

        first_handle = channel.subscribe(first.append)
        second_handle = channel.subscribe(second.append)

        assert channel.state is ConnectionState.OPEN
        assert await settle(lambda: ticker.waiters == 1)

        ticker.tick()
        assert await settle(lambda: len(first) == 1 and len(second) == 1)
        assert fetch.calls == 1

        first_handle.release()
        assert channel.timer_active
        assert await settle(lambda: ticker.waiters == 1)
        ticker.tick()
        assert await settle(lambda: len(second) == 2)
        assert len(first) == 1
        assert fetch.calls == 2

        second_handle.release()
        assert not channel.timer_active
        assert channel.state is ConnectionState.CLOSED
        assert await settle(lambda: ticker.waiters == 0)

    asyncio.run(run())


def test_failed_tick_is_skipped_without_state_change() -> None:
    async def run() -> None:
        ticker = ManualTicker()
        fetch = CountingFetch(TransportError("refused"), ["a"])
        channel: PollingChannel[list[str]] = PollingChannel(
            "alerts", fetch, interval_seconds=2.0, sleep=ticker
        )
        received: list[list[str]] = []
        channel.subscribe(received.append)

        assert await settle(lambda: ticker.waiters == 1)
        ticker.tick()
        assert await settle(lambda: fetch.calls == 1 and ticker.waiters == 1)
        assert received == []
        assert channel.state is ConnectionState.OPEN

        ticker.tick()
        assert await settle(lambda: received == [["a"]])

        await channel.aclose()
        assert not channel.timer_active

    asyncio.run(run())


def test_resubscribe_after_idle_starts_a_new_timer() -> None:
    async def run() -> None:
        ticker = ManualTicker()
        channel: PollingChannel[list[str]] = PollingChannel(
            "alerts", CountingFetch(), interval_seconds=2.0, sleep=ticker
        )

        channel.subscribe(lambda _listing: None).release()
        assert channel.state is ConnectionState.CLOSED

        received: list[list[str]] = []
        channel.subscribe(received.append)
        assert channel.state is ConnectionState.OPEN
        assert await settle(lambda: ticker.waiters == 1)
        ticker.tick()
        assert await settle(lambda: len(received) == 1)

        await channel.aclose()

    asyncio.run(run())
