"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class StreamKind(StrEnum):
    ALERT = "alert"
    INSIGHT = "insight"
    EVENT = "event"


class AlertSeverity(StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    WARNING = "warning"
    INFO = "info"


class InsightSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InsightType(StrEnum):
    TESTING_PROMOTION = "testing_promotion"
    ANOMALY = "anomaly"
    OPTIMIZATION = "optimization"
    DAILY_REPORT = "daily_report"


class EventType(StrEnum):
    EXEC = "exec"
    CONNECT = "connect"
    FILE = "file"


class AlertAction(StrEnum):
    """Enforcement outcome of an alert: blocked by the probe or merely alerted."""

    BLOCKED = "blocked"
    ALERTED = "alerted"


class ActionOutcome(StrEnum):
    PROMOTED = "promoted"
    DISMISSED = "dismissed"


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"


class ChatRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class InsertPolicy(StrEnum):
    """Which end of a bounded buffer receives new items.

    ``HEAD`` keeps the newest item first (real-time feeds); ``TAIL`` appends in
    chronological order. Eviction always happens at the opposite end.
    """

    HEAD = "head"
    TAIL = "tail"
