"""Merge bulk snapshots and incremental deltas into a buffer and its counters.

A bulk refresh is ground truth and overwrites whatever incremental admissions
happened before it landed. Items admitted while a refresh was in flight are replayed
on top of the snapshot so a live update that postdates the snapshot is never lost.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .buffer import BoundedBuffer
from .counters import CounterLedger

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from telewatch.domain.model import ActionOutcome, InsertPolicy, StreamItem

    from .counters import CounterAxis

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReconciledView:
    """Immutable snapshot of what a consumer should display."""

    items: tuple[StreamItem, ...]
    counts: Mapping[str, dict[str, int]]
    new_count: int
    total_admitted: int


class StreamReconciler:
    def __init__(
        self,
        *,
        axes: Iterable[CounterAxis],
        capacity: int = 100,
        policy: InsertPolicy,
    ) -> None:
        self.buffer = BoundedBuffer(capacity=capacity, policy=policy)
        self.ledger = CounterLedger(axes)
        self.new_count = 0
        self.total_admitted = 0
        self._refresh_depth = 0
        self._admitted_during_refresh: list[StreamItem] = []

    @property
    def items(self) -> tuple[StreamItem, ...]:
        return self.buffer.items

    @property
    def refreshing(self) -> bool:
        return self._refresh_depth > 0

    def view(self) -> ReconciledView:
        return ReconciledView(
            items=self.buffer.items,
            counts=self.ledger.snapshot(),
            new_count=self.new_count,
            total_admitted=self.total_admitted,
        )

    def begin_refresh(self) -> None:
        """Mark the start of a snapshot fetch; incremental admissions are remembered."""

        if self._refresh_depth == 0:
            self._admitted_during_refresh = []
        self._refresh_depth += 1

    def abort_refresh(self) -> None:
        """Close a refresh window whose snapshot never arrived; the buffer is left as is."""

        if self._refresh_depth == 0:
            return
        self._refresh_depth -= 1
        if self._refresh_depth == 0:
            self._admitted_during_refresh = []

    def complete_refresh(self, snapshot: Iterable[StreamItem]) -> None:
        """Apply a snapshot fetched after ``begin_refresh``."""

        pending = tuple(self._admitted_during_refresh)
        self._refresh_depth = max(self._refresh_depth - 1, 0)
        if self._refresh_depth == 0:
            self._admitted_during_refresh = []

        self.buffer.bulk_replace(snapshot)
        replayed = 0
        for item in pending:
            if self.buffer.admit(item).inserted:
                replayed += 1
        self.ledger.recount(self.buffer)
        if replayed:
            log.debug("Replayed %s live item(s) admitted during refresh", replayed)

    def apply_snapshot(self, snapshot: Iterable[StreamItem]) -> None:
        """Bulk refresh path: replace the buffer and recount from scratch."""

        self.begin_refresh()
        self.complete_refresh(snapshot)

    def apply_item(self, item: StreamItem) -> bool:
        """Incremental push path. Returns ``True`` when the item was new."""

        result = self.buffer.admit(item)
        if not result.inserted:
            return False
        self.ledger.apply_delta((item,), result.evicted)
        self.new_count += 1
        self.total_admitted += 1
        if self._refresh_depth:
            self._admitted_during_refresh.append(item)
        return True

    def apply_poll(self, listing: Iterable[StreamItem]) -> tuple[StreamItem, ...]:
        """Poll path: the listing is authoritative, additions are diffed against known ids."""

        result = self.buffer.bulk_replace(listing)
        self.ledger.recount(self.buffer)
        if result.added:
            self.new_count += len(result.added)
            self.total_admitted += len(result.added)
            if self._refresh_depth:
                self._admitted_during_refresh.extend(result.added)
        return result.added

    def remove(self, item_id: str) -> StreamItem | None:
        removed = self.buffer.remove(item_id)
        if removed is not None:
            self.ledger.discount((removed,))
        return removed

    def resolve(self, item_id: str, outcome: ActionOutcome) -> StreamItem | None:
        """Remove an item an operator acted on and return it stamped with the outcome."""

        removed = self.remove(item_id)
        return None if removed is None else removed.with_outcome(outcome)

    def clear_new_count(self) -> None:
        self.new_count = 0
