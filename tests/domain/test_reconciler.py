from __future__ import annotations

from telewatch.domain.counters import ALERT_AXES, tally
from telewatch.domain.model import ActionOutcome, InsertPolicy
from telewatch.domain.reconciler import StreamReconciler
from tests.helpers.telemetry import make_alert


def _alerts(capacity: int = 100) -> StreamReconciler:
    return StreamReconciler(axes=ALERT_AXES, capacity=capacity, policy=InsertPolicy.HEAD)


def test_pushing_capacity_plus_one_alerts_keeps_counts_recountable() -> None:
    reconciler = _alerts()

    for index in range(101):
        reconciler.apply_item(make_alert(f"alert-{index:03d}", severity="high"))

    assert len(reconciler.items) == 100
    assert reconciler.ledger.counts("severity")["high"] == 100
    assert "alert-000" not in reconciler.buffer.seen_ids
    assert reconciler.items[0].id == "alert-100"
    assert reconciler.total_admitted == 101
    assert reconciler.ledger.snapshot() == tally(reconciler.items, ALERT_AXES)


def test_duplicate_push_changes_nothing() -> None:
    reconciler = _alerts()
    reconciler.apply_item(make_alert("a", severity="critical"))
    before = reconciler.view()

    assert not reconciler.apply_item(make_alert("a", severity="info"))

    assert reconciler.view() == before
    assert reconciler.new_count == 1


def test_snapshot_recounts_after_dedup_and_truncation() -> None:
    reconciler = _alerts(capacity=3)
    listing = [
        make_alert("a", severity="info"),
        make_alert("b", severity="warning"),
        make_alert("a", severity="critical", blocked=True),
        make_alert("c", severity="high"),
        make_alert("d", severity="high"),
    ]

    reconciler.apply_snapshot(listing)

    assert [item.id for item in reconciler.items] == ["a", "b", "c"]
    assert reconciler.ledger.snapshot() == tally(reconciler.items, ALERT_AXES)
    assert reconciler.ledger.counts("action") == {"blocked": 1, "alerted": 2}


def test_poll_counts_only_new_ids() -> None:
    reconciler = _alerts()
    reconciler.apply_poll([make_alert("a"), make_alert("b")])
    reconciler.clear_new_count()

    added = reconciler.apply_poll([make_alert("c"), make_alert("a"), make_alert("b")])

    assert [item.id for item in added] == ["c"]
    assert reconciler.new_count == 1
    assert reconciler.total_admitted == 3
    assert reconciler.ledger.counts("severity")["high"] == 3


def test_poll_listing_is_authoritative() -> None:
    reconciler = _alerts()
    reconciler.apply_item(make_alert("pushed"))

    reconciler.apply_poll([make_alert("listed")])

    assert [item.id for item in reconciler.items] == ["listed"]
    assert reconciler.ledger.counts("severity")["high"] == 1


def test_push_during_refresh_is_replayed_on_top_of_snapshot() -> None:
    reconciler = _alerts()
    reconciler.begin_refresh()

    reconciler.apply_item(make_alert("live", severity="critical"))
    reconciler.complete_refresh([make_alert("old-1"), make_alert("old-2")])

    assert [item.id for item in reconciler.items] == ["live", "old-1", "old-2"]
    assert reconciler.ledger.counts("severity") == {
        "critical": 1,
        "high": 2,
        "warning": 0,
        "info": 0,
    }
    assert not reconciler.refreshing


def test_poll_during_refresh_survives_older_snapshot() -> None:
    reconciler = _alerts()
    reconciler.apply_poll([make_alert("a"), make_alert("b")])
    reconciler.clear_new_count()
    reconciler.begin_refresh()

    reconciler.apply_poll([make_alert("c"), make_alert("a"), make_alert("b")])
    reconciler.complete_refresh([make_alert("a"), make_alert("b")])

    assert [item.id for item in reconciler.items] == ["c", "a", "b"]
    assert reconciler.new_count == 1

    assert reconciler.apply_poll([make_alert("c"), make_alert("a"), make_alert("b")]) == ()
    assert reconciler.new_count == 1
    assert reconciler.total_admitted == 3


def test_push_before_refresh_is_overwritten_by_snapshot() -> None:
    reconciler = _alerts()
    reconciler.apply_item(make_alert("early"))

    reconciler.apply_snapshot([make_alert("snap")])

    assert [item.id for item in reconciler.items] == ["snap"]


def test_aborted_refresh_keeps_buffer() -> None:
    reconciler = _alerts()
    reconciler.apply_snapshot([make_alert("a")])
    reconciler.begin_refresh()
    reconciler.apply_item(make_alert("b"))

    reconciler.abort_refresh()

    assert [item.id for item in reconciler.items] == ["b", "a"]
    assert not reconciler.refreshing


def test_resolve_removes_item_and_stamps_outcome() -> None:
    reconciler = _alerts()
    reconciler.apply_snapshot([make_alert("a", severity="critical"), make_alert("b")])

    resolved = reconciler.resolve("a", ActionOutcome.DISMISSED)

    assert resolved is not None
    assert resolved.action_outcome is ActionOutcome.DISMISSED
    assert [item.id for item in reconciler.items] == ["b"]
    assert reconciler.ledger.counts("severity")["critical"] == 0
    assert reconciler.resolve("a", ActionOutcome.DISMISSED) is None
