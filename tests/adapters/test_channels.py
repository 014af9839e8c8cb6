from __future__ import annotations

import pytest

from telewatch.adapters.backend import BackendClient, RulesReload
from telewatch.adapters.backend.channels import (
    ALERTS_PATH,
    INSIGHT_STREAM_PATH,
    alert_channel,
    decode_insight_event,
    decode_rates_event,
    decode_stream_event,
    insight_channel,
)
from telewatch.adapters.backend.sse import SseEvent
from telewatch.domain.errors import ParseError
from telewatch.domain.model import ConnectionState, StreamKind
from tests.helpers.telemetry import make_config

EXEC_EVENT = '{"type": "exec", "timestamp": 5, "pid": 10, "comm": "sh", "cgroupId": "1"}'


def test_rules_reload_event_is_decoded_as_signal() -> None:
    message = decode_stream_event(SseEvent(event="rules:reload", data='{"timestamp": 1700}'))

    assert message == RulesReload(timestamp=1700)


def test_rules_reload_tolerates_empty_payload() -> None:
    assert decode_stream_event(SseEvent(event="rules:reload", data="")) == RulesReload()


def test_rules_reload_rejects_non_object() -> None:
    with pytest.raises(ParseError):
        decode_stream_event(SseEvent(event="rules:reload", data="[1, 2]"))


def test_default_events_become_stream_items() -> None:
    message = decode_stream_event(SseEvent(event="message", data=EXEC_EVENT))

    assert not isinstance(message, RulesReload)
    assert message.kind is StreamKind.EVENT
    assert message.payload["comm"] == "sh"


def test_insight_heartbeat_decodes_to_none() -> None:
    assert decode_insight_event(SseEvent(event="message", data='{"type": "heartbeat"}')) is None


def test_rates_event_decodes_counts() -> None:
    rates = decode_rates_event(
        SseEvent(event="message", data='{"exec": 3, "network": 1, "file": 7}')
    )

    assert (rates.exec, rates.network, rates.file) == (3, 1, 7)


def test_factories_start_idle() -> None:
    client = BackendClient(make_config(poll_interval_seconds=5.0))

    alerts = alert_channel(client)
    insights = insight_channel(client)

    assert alerts.name == ALERTS_PATH
    assert alerts.interval_seconds == 5.0
    assert alerts.state is ConnectionState.DISCONNECTED
    assert insights.path == INSIGHT_STREAM_PATH
    assert insights.state is ConnectionState.DISCONNECTED
    assert insights.session is None
