"""Capacity-bounded, id-keyed buffer of stream items.

The buffer owns deduplication and truncation. Membership is kept in the same ordered
mapping as the items, so ``seen_ids`` always equals the ids currently buffered.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from telewatch.domain.model import InsertPolicy

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, KeysView

    from telewatch.domain.model import StreamItem


@dataclass(frozen=True, slots=True)
class AdmitResult:
    inserted: bool
    evicted: tuple[StreamItem, ...] = ()


@dataclass(frozen=True, slots=True)
class ReplaceResult:
    """Outcome of a bulk replace.

    ``added`` holds the surviving items whose ids were unknown before the replace.
    """

    added: tuple[StreamItem, ...]
    dropped_duplicates: int
    truncated: int


class BoundedBuffer:
    def __init__(self, *, capacity: int = 100, policy: InsertPolicy = InsertPolicy.HEAD) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.policy = policy
        self._entries: OrderedDict[str, StreamItem] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._entries

    def __iter__(self) -> Iterator[StreamItem]:
        return iter(self._entries.values())

    @property
    def items(self) -> tuple[StreamItem, ...]:
        return tuple(self._entries.values())

    @property
    def seen_ids(self) -> KeysView[str]:
        return self._entries.keys()

    def get(self, item_id: str) -> StreamItem | None:
        return self._entries.get(item_id)

    def admit(self, item: StreamItem) -> AdmitResult:
        """Insert ``item`` unless its id is already buffered."""

        if item.id in self._entries:
            return AdmitResult(inserted=False)

        self._entries[item.id] = item
        if self.policy is InsertPolicy.HEAD:
            self._entries.move_to_end(item.id, last=False)

        evicted: list[StreamItem] = []
        while len(self._entries) > self.capacity:
            _, dropped = self._entries.popitem(last=self.policy is InsertPolicy.HEAD)
            evicted.append(dropped)
        return AdmitResult(inserted=True, evicted=tuple(evicted))

    def bulk_replace(self, items: Iterable[StreamItem]) -> ReplaceResult:
        """Discard the current contents and rebuild from an authoritative listing.

        Duplicate ids keep the position of their first occurrence and the value of
        their last one. Truncation drops from the eviction end of the policy.
        """

        previous_ids = set(self._entries)
        merged: dict[str, StreamItem] = {}
        total = 0
        for item in items:
            total += 1
            merged[item.id] = item
        ordered = list(merged.values())

        truncated = max(len(ordered) - self.capacity, 0)
        if truncated:
            if self.policy is InsertPolicy.HEAD:
                ordered = ordered[: self.capacity]
            else:
                ordered = ordered[-self.capacity :]

        self._entries = OrderedDict((item.id, item) for item in ordered)
        added = tuple(item for item in ordered if item.id not in previous_ids)
        return ReplaceResult(
            added=added,
            dropped_duplicates=total - len(merged),
            truncated=truncated,
        )

    def remove(self, item_id: str) -> StreamItem | None:
        return self._entries.pop(item_id, None)

    def clear(self) -> None:
        self._entries.clear()
