"""Public interface for the telemetry backend adapter."""

from __future__ import annotations

from .assistant import AssistantChannel, iter_chat_frames, parse_chat_frame
from .channels import (
    RulesReload,
    alert_channel,
    event_channel,
    insight_channel,
    rate_channel,
)
from .client import BackendClient, extract_error_message
from .polling import PollingChannel
from .push import PushChannel, PushSession
from .sse import SseDecoder, SseEvent, iter_sse_events

__all__ = [
    "AssistantChannel",
    "BackendClient",
    "PollingChannel",
    "PushChannel",
    "PushSession",
    "RulesReload",
    "SseDecoder",
    "SseEvent",
    "alert_channel",
    "event_channel",
    "extract_error_message",
    "insight_channel",
    "iter_chat_frames",
    "iter_sse_events",
    "parse_chat_frame",
    "rate_channel",
]
