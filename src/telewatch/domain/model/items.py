"""Stream items: the unit of reconciliation for alerts, insights and raw events."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .actions import ItemAction
    from .enums import ActionOutcome, StreamKind


def _empty_payload() -> Mapping[str, object]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class StreamItem:
    """One logical event delivered by a snapshot, a poll tick or a push message.

    ``id`` is the only deduplication key: two items sharing it are the same event even
    when their payloads differ.
    """

    id: str
    timestamp: int
    kind: StreamKind
    severity_or_type: str
    payload: Mapping[str, object] = field(default_factory=_empty_payload, compare=False)
    action_outcome: ActionOutcome | None = None
    actions: tuple[ItemAction, ...] = field(default=(), compare=False)

    def with_outcome(self, outcome: ActionOutcome) -> StreamItem:
        return replace(self, action_outcome=outcome)

    def find_action(self, action_id: str) -> ItemAction | None:
        for action in self.actions:
            if action.action_id == action_id:
                return action
        return None
