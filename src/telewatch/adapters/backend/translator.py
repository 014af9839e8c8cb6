"""Translate backend payloads into stream items."""

from __future__ import annotations

import hashlib
import json
from types import MappingProxyType
from typing import TYPE_CHECKING

from pydantic import TypeAdapter, ValidationError

from telewatch.domain.errors import ParseError
from telewatch.domain.model import StreamItem, StreamKind, parse_action

from .schema import (
    AlertPayload,
    EventRatesPayload,
    HeartbeatPayload,
    InsightPayload,
    StreamEventPayload,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pydantic import BaseModel

    from .schema import ConnectEventPayload, ExecEventPayload, FileEventPayload

_STREAM_EVENT_ADAPTER: TypeAdapter[ExecEventPayload | ConnectEventPayload | FileEventPayload] = (
    TypeAdapter(StreamEventPayload)
)


def _frozen_payload(model: BaseModel) -> Mapping[str, object]:
    return MappingProxyType(model.model_dump(mode="json", by_alias=True))


def alert_to_item(payload: AlertPayload) -> StreamItem:
    return StreamItem(
        id=payload.id,
        timestamp=payload.timestamp,
        kind=StreamKind.ALERT,
        severity_or_type=payload.severity,
        payload=_frozen_payload(payload),
    )


def insight_to_item(payload: InsightPayload) -> StreamItem:
    created_ms = int(payload.created_at.timestamp() * 1000) if payload.created_at else 0
    actions = tuple(
        parse_action(action.action_id, label=action.label, params=action.params)
        for action in payload.actions
    )
    return StreamItem(
        id=payload.id,
        timestamp=created_ms,
        kind=StreamKind.INSIGHT,
        severity_or_type=payload.severity,
        payload=_frozen_payload(payload),
        actions=actions,
    )


def event_id(payload: ExecEventPayload | ConnectEventPayload | FileEventPayload) -> str:
    """Derive a stable dedup key for raw events, which carry no server id."""

    canonical = json.dumps(payload.model_dump(mode="json", by_alias=True), sort_keys=True)
    digest = hashlib.sha1(canonical.encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"{payload.type}-{digest[:16]}"


def event_to_item(payload: ExecEventPayload | ConnectEventPayload | FileEventPayload) -> StreamItem:
    return StreamItem(
        id=event_id(payload),
        timestamp=payload.timestamp,
        kind=StreamKind.EVENT,
        severity_or_type=payload.type,
        payload=_frozen_payload(payload),
    )


def _decode_json(raw: str) -> object:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON message: {exc.msg}", raw=raw) from exc


def parse_alert_listing(payload: object) -> list[StreamItem]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ParseError("Expected a JSON array of alerts")
    try:
        return [alert_to_item(AlertPayload.model_validate(entry)) for entry in payload]
    except ValidationError as exc:
        raise ParseError(f"Malformed alert listing: {exc.error_count()} error(s)") from exc


def parse_insight_message(raw: str) -> StreamItem | None:
    """Parse one insight-stream message; ``None`` signals a heartbeat."""

    data = _decode_json(raw)
    if isinstance(data, dict) and data.get("type") == "heartbeat":
        HeartbeatPayload.model_validate(data)
        return None
    try:
        return insight_to_item(InsightPayload.model_validate(data))
    except ValidationError as exc:
        raise ParseError(f"Malformed insight message: {exc.error_count()} error(s)", raw=raw) from exc


def parse_event_message(raw: str) -> StreamItem:
    data = _decode_json(raw)
    try:
        return event_to_item(_STREAM_EVENT_ADAPTER.validate_python(data))
    except ValidationError as exc:
        raise ParseError(f"Malformed stream event: {exc.error_count()} error(s)", raw=raw) from exc


def parse_rates_message(raw: str) -> EventRatesPayload:
    data = _decode_json(raw)
    try:
        return EventRatesPayload.model_validate(data)
    except ValidationError as exc:
        raise ParseError(f"Malformed rate message: {exc.error_count()} error(s)", raw=raw) from exc
