from __future__ import annotations

import pytest

from telewatch.domain.buffer import BoundedBuffer
from telewatch.domain.model import InsertPolicy
from tests.helpers.telemetry import make_alert


def test_admit_inserts_new_ids_at_head() -> None:
    buffer = BoundedBuffer(capacity=3)

    assert buffer.admit(make_alert("a")).inserted
    assert buffer.admit(make_alert("b")).inserted

    assert [item.id for item in buffer.items] == ["b", "a"]
    assert set(buffer.seen_ids) == {"a", "b"}


def test_admit_is_idempotent_for_known_ids() -> None:
    buffer = BoundedBuffer(capacity=3)
    buffer.admit(make_alert("a", severity="high"))

    result = buffer.admit(make_alert("a", severity="critical"))

    assert not result.inserted
    assert result.evicted == ()
    assert len(buffer) == 1
    assert buffer.items[0].severity_or_type == "high"


def test_head_policy_evicts_oldest_from_tail() -> None:
    buffer = BoundedBuffer(capacity=2, policy=InsertPolicy.HEAD)
    buffer.admit(make_alert("a"))
    buffer.admit(make_alert("b"))

    result = buffer.admit(make_alert("c"))

    assert [item.id for item in result.evicted] == ["a"]
    assert [item.id for item in buffer.items] == ["c", "b"]
    assert "a" not in buffer
    assert set(buffer.seen_ids) == {"b", "c"}


def test_tail_policy_appends_and_evicts_from_head() -> None:
    buffer = BoundedBuffer(capacity=2, policy=InsertPolicy.TAIL)
    for item_id in ("a", "b", "c"):
        buffer.admit(make_alert(item_id))

    assert [item.id for item in buffer.items] == ["b", "c"]
    assert "a" not in buffer.seen_ids


def test_seen_ids_track_items_across_admissions() -> None:
    buffer = BoundedBuffer(capacity=5)
    for index in (1, 2, 3, 2, 4, 5, 6, 1, 7):
        buffer.admit(make_alert(f"id-{index}"))

        assert len(buffer.seen_ids) == len(buffer.items)
        assert set(buffer.seen_ids) == {item.id for item in buffer.items}

    assert len(buffer) == 5


def test_bulk_replace_dedups_with_last_value_in_first_position() -> None:
    buffer = BoundedBuffer(capacity=10)
    buffer.admit(make_alert("stale"))

    result = buffer.bulk_replace(
        [
            make_alert("a", severity="info"),
            make_alert("b"),
            make_alert("a", severity="critical"),
        ]
    )

    assert [item.id for item in buffer.items] == ["a", "b"]
    assert buffer.get("a") is not None
    assert buffer.get("a").severity_or_type == "critical"  # type: ignore[union-attr]
    assert "stale" not in buffer
    assert result.dropped_duplicates == 1
    assert [item.id for item in result.added] == ["a", "b"]


def test_bulk_replace_truncates_from_eviction_end() -> None:
    head = BoundedBuffer(capacity=2, policy=InsertPolicy.HEAD)
    tail = BoundedBuffer(capacity=2, policy=InsertPolicy.TAIL)
    listing = [make_alert("1"), make_alert("2"), make_alert("3")]

    head_result = head.bulk_replace(listing)
    tail.bulk_replace(listing)

    assert [item.id for item in head.items] == ["1", "2"]
    assert [item.id for item in tail.items] == ["2", "3"]
    assert head_result.truncated == 1
    assert set(head.seen_ids) == {"1", "2"}


def test_bulk_replace_reports_only_unknown_ids_as_added() -> None:
    buffer = BoundedBuffer(capacity=5)
    buffer.bulk_replace([make_alert("a"), make_alert("b")])

    result = buffer.bulk_replace([make_alert("c"), make_alert("a"), make_alert("b")])

    assert [item.id for item in result.added] == ["c"]


def test_remove_drops_item_and_id() -> None:
    buffer = BoundedBuffer(capacity=5)
    buffer.admit(make_alert("a"))

    removed = buffer.remove("a")

    assert removed is not None
    assert removed.id == "a"
    assert buffer.remove("a") is None
    assert "a" not in buffer.seen_ids


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError, match="capacity"):
        BoundedBuffer(capacity=0)
