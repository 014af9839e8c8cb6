"""Public domain model surface."""

from __future__ import annotations

from telewatch.domain.model.actions import (
    DISMISS,
    INVESTIGATE,
    PROMOTE,
    DismissAction,
    InvestigateAction,
    ItemAction,
    PromoteAction,
    UnrecognizedAction,
    parse_action,
)
from telewatch.domain.model.chat import ChatMessage, Conversation, new_session_id, now_ms
from telewatch.domain.model.enums import (
    ActionOutcome,
    AlertAction,
    AlertSeverity,
    ChatRole,
    ConnectionState,
    EventType,
    InsertPolicy,
    InsightSeverity,
    InsightType,
    StreamKind,
)
from telewatch.domain.model.items import StreamItem

__all__ = [  # noqa: RUF022
    # actions
    "DISMISS",
    "INVESTIGATE",
    "PROMOTE",
    "DismissAction",
    "InvestigateAction",
    "ItemAction",
    "PromoteAction",
    "UnrecognizedAction",
    "parse_action",
    # chat
    "ChatMessage",
    "Conversation",
    "new_session_id",
    "now_ms",
    # enums
    "ActionOutcome",
    "AlertAction",
    "AlertSeverity",
    "ChatRole",
    "ConnectionState",
    "EventType",
    "InsertPolicy",
    "InsightSeverity",
    "InsightType",
    "StreamKind",
    # items
    "StreamItem",
]
