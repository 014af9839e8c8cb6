"""Aggregate statistics derived from buffer contents.

Each axis classifies an item into one bucket of a fixed enumeration. Values outside
the enumeration are excluded from every bucket rather than treated as errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from telewatch.domain.model import (
    AlertAction,
    AlertSeverity,
    EventType,
    InsightSeverity,
    InsightType,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from enum import StrEnum

    from telewatch.domain.model import StreamItem


@dataclass(slots=True)
class CounterSet:
    """Counts for one classification axis."""

    buckets: tuple[str, ...]
    counts: dict[str, int] = field(default_factory=dict[str, int])

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.counts = dict.fromkeys(self.buckets, 0)

    def add(self, bucket: str | None, amount: int = 1) -> None:
        if bucket is None or bucket not in self.counts:
            return
        self.counts[bucket] += amount

    def total(self) -> int:
        return sum(self.counts.values())

    def as_dict(self) -> dict[str, int]:
        return dict(self.counts)


@dataclass(frozen=True, slots=True)
class CounterAxis:
    name: str
    buckets: tuple[str, ...]
    classify: Callable[[StreamItem], str | None]


class CounterLedger:
    def __init__(self, axes: Iterable[CounterAxis]) -> None:
        self._axes = tuple(axes)
        self._sets = {axis.name: CounterSet(buckets=axis.buckets) for axis in self._axes}

    @property
    def axes(self) -> tuple[str, ...]:
        return tuple(axis.name for axis in self._axes)

    def counts(self, axis: str) -> dict[str, int]:
        return self._sets[axis].as_dict()

    def snapshot(self) -> dict[str, dict[str, int]]:
        return {name: counter.as_dict() for name, counter in self._sets.items()}

    def recount(self, items: Iterable[StreamItem]) -> None:
        """Reset every axis and tally ``items`` from scratch."""

        for counter in self._sets.values():
            counter.reset()
        self._apply(items, 1)

    def apply_delta(
        self,
        admitted: Iterable[StreamItem],
        evicted: Iterable[StreamItem] = (),
    ) -> None:
        """Account for newly admitted items and for whatever their admission evicted."""

        self._apply(admitted, 1)
        self._apply(evicted, -1)

    def discount(self, items: Iterable[StreamItem]) -> None:
        self._apply(items, -1)

    def _apply(self, items: Iterable[StreamItem], amount: int) -> None:
        for item in items:
            for axis in self._axes:
                self._sets[axis.name].add(axis.classify(item), amount)


def _values(enum_type: type[StrEnum]) -> tuple[str, ...]:
    return tuple(member.value for member in enum_type)


def _severity(item: StreamItem) -> str | None:
    return item.severity_or_type


def alert_action(item: StreamItem) -> AlertAction:
    blocked = item.payload.get("blocked")
    return AlertAction.BLOCKED if blocked is True else AlertAction.ALERTED


def _insight_type(item: StreamItem) -> str | None:
    value = item.payload.get("type")
    return value if isinstance(value, str) else None


ALERT_AXES: tuple[CounterAxis, ...] = (
    CounterAxis(name="severity", buckets=_values(AlertSeverity), classify=_severity),
    CounterAxis(name="action", buckets=_values(AlertAction), classify=alert_action),
)

INSIGHT_AXES: tuple[CounterAxis, ...] = (
    CounterAxis(name="severity", buckets=_values(InsightSeverity), classify=_severity),
    CounterAxis(name="type", buckets=_values(InsightType), classify=_insight_type),
)

EVENT_AXES: tuple[CounterAxis, ...] = (
    CounterAxis(name="type", buckets=_values(EventType), classify=_severity),
)


def tally(items: Iterable[StreamItem], axes: Iterable[CounterAxis]) -> Mapping[str, dict[str, int]]:
    """Count ``items`` from scratch without touching any ledger."""

    ledger = CounterLedger(axes)
    ledger.recount(items)
    return ledger.snapshot()
