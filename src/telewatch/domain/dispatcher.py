"""Execute operator actions against the backend and mirror them in the local buffer."""

from __future__ import annotations

from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from telewatch.domain.errors import RequestError, TransportError
from telewatch.domain.model import (
    ActionOutcome,
    DismissAction,
    InvestigateAction,
    PromoteAction,
    UnrecognizedAction,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from telewatch.domain.model import ItemAction, StreamItem
    from telewatch.domain.ports import Navigator, RulePromoter

    from .reconciler import StreamReconciler

log = getLogger(__name__)


class DispatchResult(StrEnum):
    REMOVED = "removed"
    NAVIGATED = "navigated"
    FAILED = "failed"
    IGNORED = "ignored"


class ActionDispatcher:
    """Run the actions an item advertises.

    Removal after ``promote`` only happens once the backend has confirmed it. If the
    dispatcher is closed while a request is in flight, the late completion is ignored.
    """

    def __init__(
        self,
        reconciler: StreamReconciler,
        *,
        promoter: RulePromoter,
        navigator: Navigator | None = None,
        on_resolved: Callable[[StreamItem], None] | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._promoter = promoter
        self._navigator = navigator
        self._on_resolved = on_resolved
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    async def execute(self, item: StreamItem, action_id: str) -> DispatchResult:
        action = item.find_action(action_id)
        if action is None:
            log.warning("Action %r not offered by item %s", action_id, item.id)
            return DispatchResult.IGNORED
        return await self.run(item, action)

    async def run(self, item: StreamItem, action: ItemAction) -> DispatchResult:
        match action:
            case PromoteAction(rule_name=rule_name):
                return await self._promote(item, rule_name)
            case DismissAction():
                return self._resolve(item, ActionOutcome.DISMISSED)
            case InvestigateAction(event_id=event_id):
                if self._navigator is None:
                    log.warning("No navigator configured; cannot investigate %s", event_id)
                    return DispatchResult.IGNORED
                self._navigator.open_investigation(event_id)
                return DispatchResult.NAVIGATED
            case UnrecognizedAction(raw_action_id=raw_action_id):
                log.warning("Unknown action %r on item %s", raw_action_id, item.id)
                return DispatchResult.IGNORED

    async def _promote(self, item: StreamItem, rule_name: str) -> DispatchResult:
        try:
            await self._promoter.promote_rule(rule_name)
        except (RequestError, TransportError) as exc:
            log.error("Failed to promote rule %s: %s", rule_name, exc)
            return DispatchResult.FAILED
        if self._closed:
            log.debug("Promotion of %s completed after close; ignoring", rule_name)
            return DispatchResult.IGNORED
        return self._resolve(item, ActionOutcome.PROMOTED)

    def _resolve(self, item: StreamItem, outcome: ActionOutcome) -> DispatchResult:
        resolved = self._reconciler.resolve(item.id, outcome)
        if resolved is not None and self._on_resolved is not None:
            self._on_resolved(resolved)
        return DispatchResult.REMOVED
