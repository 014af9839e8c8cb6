"""Closed set of actions an item may offer to the operator."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import ClassVar, Final

PROMOTE: Final[str] = "promote"
DISMISS: Final[str] = "dismiss"
INVESTIGATE: Final[str] = "investigate"


def _frozen_params(params: Mapping[str, object] | None) -> Mapping[str, object]:
    return MappingProxyType(dict(params or {}))


@dataclass(frozen=True, slots=True)
class PromoteAction:
    """Promote the rule named by ``rule_name`` out of testing mode."""

    action_id: ClassVar[str] = PROMOTE

    rule_name: str
    label: str = "Promote"
    params: Mapping[str, object] = field(default_factory=lambda: _frozen_params(None))


@dataclass(frozen=True, slots=True)
class DismissAction:
    action_id: ClassVar[str] = DISMISS

    label: str = "Dismiss"
    params: Mapping[str, object] = field(default_factory=lambda: _frozen_params(None))


@dataclass(frozen=True, slots=True)
class InvestigateAction:
    action_id: ClassVar[str] = INVESTIGATE

    event_id: str
    label: str = "Investigate"
    params: Mapping[str, object] = field(default_factory=lambda: _frozen_params(None))


@dataclass(frozen=True, slots=True)
class UnrecognizedAction:
    """Action advertised by the backend that this client does not know how to run."""

    raw_action_id: str
    label: str = ""
    params: Mapping[str, object] = field(default_factory=lambda: _frozen_params(None))

    @property
    def action_id(self) -> str:
        return self.raw_action_id


ItemAction = PromoteAction | DismissAction | InvestigateAction | UnrecognizedAction


def _param_str(params: Mapping[str, object], key: str) -> str | None:
    value = params.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_action(
    action_id: str,
    *,
    label: str = "",
    params: Mapping[str, object] | None = None,
) -> ItemAction:
    """Build the typed action for ``action_id``.

    Known identifiers missing their required parameter degrade to
    ``UnrecognizedAction`` so they can still be logged but never executed.
    """

    frozen = _frozen_params(params)
    if action_id == PROMOTE:
        rule_name = _param_str(frozen, "rule_name")
        if rule_name is not None:
            return PromoteAction(rule_name=rule_name, label=label or "Promote", params=frozen)
    elif action_id == DISMISS:
        return DismissAction(label=label or "Dismiss", params=frozen)
    elif action_id == INVESTIGATE:
        event_id = _param_str(frozen, "event_id")
        if event_id is not None:
            return InvestigateAction(event_id=event_id, label=label or "Investigate", params=frozen)
    return UnrecognizedAction(raw_action_id=action_id, label=label, params=frozen)
