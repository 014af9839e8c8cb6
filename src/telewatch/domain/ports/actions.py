"""Ports used by the action dispatcher."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class RulePromoter(Protocol):
    async def promote_rule(self, rule_name: str) -> None:
        """Promote ``rule_name``; raise ``RequestError``/``TransportError`` on failure."""
        ...


@runtime_checkable
class Navigator(Protocol):
    def open_investigation(self, event_id: str) -> None: ...


__all__ = ["Navigator", "RulePromoter"]
