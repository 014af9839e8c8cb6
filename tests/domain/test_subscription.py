from __future__ import annotations

from telewatch.domain.subscription import ListenerRegistry, SubscriptionHandle


def test_release_runs_teardown_once() -> None:
    calls: list[str] = []
    handle = SubscriptionHandle(lambda: calls.append("released"))

    handle.release()
    handle.release()

    assert handle.released
    assert calls == ["released"]


def test_handle_releases_on_context_exit() -> None:
    calls: list[str] = []

    with SubscriptionHandle(lambda: calls.append("released")) as handle:
        assert not handle.released

    assert calls == ["released"]


def test_registry_starts_and_stops_shared_resource() -> None:
    events: list[str] = []
    registry: ListenerRegistry[int] = ListenerRegistry(
        on_first=lambda: events.append("start"),
        on_empty=lambda: events.append("stop"),
    )

    first = registry.add(lambda _value: None)
    second = registry.add(lambda _value: None)
    first.release()
    assert events == ["start"]

    second.release()
    second.release()

    assert events == ["start", "stop"]
    assert len(registry) == 0


def test_released_listener_receives_nothing_more() -> None:
    received: list[tuple[str, int]] = []
    registry: ListenerRegistry[int] = ListenerRegistry()
    first = registry.add(lambda value: received.append(("first", value)))
    registry.add(lambda value: received.append(("second", value)))

    registry.notify(1)
    first.release()
    registry.notify(2)

    assert received == [("first", 1), ("second", 1), ("second", 2)]


def test_listener_released_during_notify_is_skipped() -> None:
    received: list[str] = []
    registry: ListenerRegistry[int] = ListenerRegistry()
    handles: list[SubscriptionHandle] = []

    def first(_value: int) -> None:
        received.append("first")
        handles[1].release()

    handles.append(registry.add(first))
    handles.append(registry.add(lambda _value: received.append("second")))

    registry.notify(1)

    assert received == ["first"]


def test_failing_listener_does_not_block_others() -> None:
    received: list[int] = []
    registry: ListenerRegistry[int] = ListenerRegistry()

    def broken(_value: int) -> None:
        raise RuntimeError("boom")

    registry.add(broken)
    registry.add(received.append)

    registry.notify(7)

    assert received == [7]
