"""Live channel factories for the backend endpoints."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from telewatch.domain.errors import ParseError

from .polling import PollingChannel
from .push import PushChannel
from .translator import parse_event_message, parse_insight_message, parse_rates_message

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from telewatch.domain.model import StreamItem

    from .client import BackendClient
    from .schema import EventRatesPayload
    from .sse import SseEvent

ALERTS_PATH = "/api/alerts"
INSIGHT_STREAM_PATH = "/api/ai/sentinel/stream"
EVENT_STREAM_PATH = "/api/stream"
RATE_STREAM_PATH = "/api/events"
RULES_RELOAD_EVENT = "rules:reload"


@dataclass(frozen=True, slots=True)
class RulesReload:
    """Signal that the backend reloaded its detection rules."""

    timestamp: int = 0


type EventMessage = StreamItem | RulesReload


def decode_insight_event(event: SseEvent) -> StreamItem | None:
    return parse_insight_message(event.data)


def decode_stream_event(event: SseEvent) -> EventMessage:
    if event.event == RULES_RELOAD_EVENT:
        return _decode_rules_reload(event.data)
    return parse_event_message(event.data)


def decode_rates_event(event: SseEvent) -> EventRatesPayload:
    return parse_rates_message(event.data)


def _decode_rules_reload(raw: str) -> RulesReload:
    try:
        data = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid rules reload payload: {exc.msg}", raw=raw) from exc
    if not isinstance(data, dict):
        raise ParseError("Rules reload payload must be an object", raw=raw)
    timestamp = data.get("timestamp", 0)
    return RulesReload(timestamp=timestamp if isinstance(timestamp, int) else 0)


def insight_channel(
    client: BackendClient,
    *,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> PushChannel[StreamItem]:
    return _push_channel(client, INSIGHT_STREAM_PATH, decode_insight_event, sleep)


def event_channel(
    client: BackendClient,
    *,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> PushChannel[EventMessage]:
    return _push_channel(client, EVENT_STREAM_PATH, decode_stream_event, sleep)


def rate_channel(
    client: BackendClient,
    *,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> PushChannel[EventRatesPayload]:
    return _push_channel(client, RATE_STREAM_PATH, decode_rates_event, sleep)


def alert_channel(
    client: BackendClient,
    *,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> PollingChannel[list[StreamItem]]:
    return PollingChannel(
        ALERTS_PATH,
        client.get_alerts,
        interval_seconds=client.config.poll_interval_seconds,
        sleep=sleep,
    )


def _push_channel[M](
    client: BackendClient,
    path: str,
    decode: Callable[[SseEvent], M | None],
    sleep: Callable[[float], Awaitable[None]] | None,
) -> PushChannel[M]:
    return PushChannel(
        path,
        opener=client.open_stream,
        decode=decode,
        stream_config=client.config.stream,
        sleep=sleep,
    )
