from __future__ import annotations

import asyncio

from telewatch.domain.counters import INSIGHT_AXES
from telewatch.domain.dispatcher import ActionDispatcher, DispatchResult
from telewatch.domain.errors import RequestError, TransportError
from telewatch.domain.model import ActionOutcome, InsertPolicy, StreamItem
from telewatch.domain.reconciler import StreamReconciler
from tests.helpers.telemetry import make_insight


class FakePromoter:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[str] = []

    async def promote_rule(self, rule_name: str) -> None:
        self.calls.append(rule_name)
        if self.error is not None:
            raise self.error


class FakeNavigator:
    def __init__(self) -> None:
        self.opened: list[str] = []

    def open_investigation(self, event_id: str) -> None:
        self.opened.append(event_id)


def _reconciler(*items: StreamItem) -> StreamReconciler:
    reconciler = StreamReconciler(axes=INSIGHT_AXES, capacity=10, policy=InsertPolicy.HEAD)
    reconciler.apply_snapshot(items)
    return reconciler


def test_dismiss_removes_locally_without_network() -> None:
    insight = make_insight("i-1", actions=[("dismiss", {})])
    reconciler = _reconciler(insight, make_insight("i-2"))
    promoter = FakePromoter()
    resolved: list[StreamItem] = []
    dispatcher = ActionDispatcher(reconciler, promoter=promoter, on_resolved=resolved.append)

    result = asyncio.run(dispatcher.execute(insight, "dismiss"))

    assert result is DispatchResult.REMOVED
    assert [item.id for item in reconciler.items] == ["i-2"]
    assert reconciler.ledger.counts("severity")["medium"] == 1
    assert promoter.calls == []
    assert [item.action_outcome for item in resolved] == [ActionOutcome.DISMISSED]


def test_promote_removes_after_success() -> None:
    insight = make_insight("i-1", actions=[("promote", {"rule_name": "ssh-brute"})])
    reconciler = _reconciler(insight)
    promoter = FakePromoter()
    dispatcher = ActionDispatcher(reconciler, promoter=promoter)

    result = asyncio.run(dispatcher.execute(insight, "promote"))

    assert result is DispatchResult.REMOVED
    assert promoter.calls == ["ssh-brute"]
    assert reconciler.items == ()


def test_promote_failure_keeps_item() -> None:
    insight = make_insight("i-1", actions=[("promote", {"rule_name": "ssh-brute"})])
    for error in (RequestError("rule not found", status=404), TransportError("refused")):
        reconciler = _reconciler(insight)
        dispatcher = ActionDispatcher(reconciler, promoter=FakePromoter(error))

        result = asyncio.run(dispatcher.execute(insight, "promote"))

        assert result is DispatchResult.FAILED
        assert [item.id for item in reconciler.items] == ["i-1"]


def test_promote_completing_after_close_is_ignored() -> None:
    insight = make_insight("i-1", actions=[("promote", {"rule_name": "ssh-brute"})])
    reconciler = _reconciler(insight)

    class ClosingPromoter:
        async def promote_rule(self, rule_name: str) -> None:  # noqa: ARG002
            dispatcher.close()

    dispatcher = ActionDispatcher(reconciler, promoter=ClosingPromoter())

    result = asyncio.run(dispatcher.execute(insight, "promote"))

    assert result is DispatchResult.IGNORED
    assert [item.id for item in reconciler.items] == ["i-1"]


def test_investigate_navigates_and_keeps_item() -> None:
    insight = make_insight("i-1", actions=[("investigate", {"event_id": "evt-9"})])
    reconciler = _reconciler(insight)
    navigator = FakeNavigator()
    dispatcher = ActionDispatcher(reconciler, promoter=FakePromoter(), navigator=navigator)

    result = asyncio.run(dispatcher.execute(insight, "investigate"))

    assert result is DispatchResult.NAVIGATED
    assert navigator.opened == ["evt-9"]
    assert len(reconciler.items) == 1


def test_unknown_or_missing_actions_are_ignored() -> None:
    insight = make_insight("i-1", actions=[("quarantine", {})])
    reconciler = _reconciler(insight)
    promoter = FakePromoter()
    dispatcher = ActionDispatcher(reconciler, promoter=promoter)

    assert asyncio.run(dispatcher.execute(insight, "quarantine")) is DispatchResult.IGNORED
    assert asyncio.run(dispatcher.execute(insight, "dismiss")) is DispatchResult.IGNORED
    assert len(reconciler.items) == 1
    assert promoter.calls == []
