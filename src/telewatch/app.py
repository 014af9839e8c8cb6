"""Application orchestration: live feeds and the runtime context that owns them."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from telewatch.adapters.backend import (
    AssistantChannel,
    BackendClient,
    RulesReload,
    alert_channel,
    event_channel,
    insight_channel,
    rate_channel,
)
from telewatch.config import get_backend_config
from telewatch.domain.counters import ALERT_AXES, EVENT_AXES, INSIGHT_AXES, alert_action
from telewatch.domain.dispatcher import ActionDispatcher, DispatchResult
from telewatch.domain.errors import RequestError, TransportError
from telewatch.domain.model import AlertAction, Conversation, InsertPolicy, StreamItem
from telewatch.domain.reconciler import StreamReconciler
from telewatch.domain.subscription import ListenerRegistry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping
    from types import TracebackType

    import httpx

    from telewatch.adapters.backend import PollingChannel, PushChannel
    from telewatch.adapters.backend.channels import EventMessage
    from telewatch.adapters.backend.schema import EventRatesPayload
    from telewatch.config import BackendConfig
    from telewatch.domain.counters import CounterAxis
    from telewatch.domain.model import ConnectionState
    from telewatch.domain.ports import Navigator, SnapshotSource
    from telewatch.domain.reconciler import ReconciledView
    from telewatch.domain.subscription import SubscriptionHandle

    Sleep = Callable[[float], Awaitable[None]]


log = getLogger(__name__)


class Feed:
    """A reconciled, bounded view over one live channel."""

    def __init__(
        self,
        name: str,
        *,
        axes: Iterable[CounterAxis],
        capacity: int,
        policy: InsertPolicy,
    ) -> None:
        self.name = name
        self.reconciler = StreamReconciler(axes=axes, capacity=capacity, policy=policy)
        self.error: str | None = None
        self._updates: ListenerRegistry[ReconciledView] = ListenerRegistry()
        self._handle: SubscriptionHandle | None = None

    @property
    def items(self) -> tuple[StreamItem, ...]:
        return self.reconciler.items

    @property
    def counts(self) -> Mapping[str, dict[str, int]]:
        return self.reconciler.ledger.snapshot()

    @property
    def new_count(self) -> int:
        return self.reconciler.new_count

    @property
    def subscribed(self) -> bool:
        return self._handle is not None

    def view(self) -> ReconciledView:
        return self.reconciler.view()

    def on_update(self, callback: Callable[[ReconciledView], None]) -> SubscriptionHandle:
        return self._updates.add(callback)

    def mark_seen(self) -> None:
        self.reconciler.clear_new_count()
        self._publish()

    def stop(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.release()

    def _publish(self) -> None:
        self._updates.notify(self.reconciler.view())

    async def _refresh(self, fetch: SnapshotSource) -> bool:
        self.reconciler.begin_refresh()
        try:
            snapshot = await fetch()
        except (RequestError, TransportError) as exc:
            self.reconciler.abort_refresh()
            self.error = str(exc)
            log.warning("Refresh of %s failed: %s", self.name, exc)
            return False
        self.error = None
        self.reconciler.complete_refresh(snapshot)
        log.debug("Refreshed %s: %s item(s)", self.name, len(self.reconciler.buffer))
        self._publish()
        return True


class AlertFeed(Feed):
    """Alerts polled as full listings, newest first."""

    def __init__(
        self,
        client: BackendClient,
        channel: PollingChannel[list[StreamItem]],
        *,
        capacity: int,
    ) -> None:
        super().__init__("alerts", axes=ALERT_AXES, capacity=capacity, policy=InsertPolicy.HEAD)
        self._client = client
        self.channel = channel

    @property
    def state(self) -> ConnectionState:
        return self.channel.state

    @property
    def blocked_alerts(self) -> list[StreamItem]:
        return [item for item in self.items if alert_action(item) is AlertAction.BLOCKED]

    @property
    def alerted_only(self) -> list[StreamItem]:
        return [item for item in self.items if alert_action(item) is AlertAction.ALERTED]

    async def refresh(self) -> bool:
        return await self._refresh(self._client.get_alerts)

    async def start(self) -> None:
        self.stop()
        await self.refresh()
        self._handle = self.channel.subscribe(self._on_listing)

    def _on_listing(self, listing: list[StreamItem]) -> None:
        added = self.reconciler.apply_poll(listing)
        if added:
            log.debug("%s new alert(s)", len(added))
        self._publish()


class InsightFeed(Feed):
    """Insights pushed one at a time, with a snapshot to establish ground truth."""

    def __init__(
        self,
        client: BackendClient,
        channel: PushChannel[StreamItem],
        *,
        capacity: int,
        navigator: Navigator | None = None,
    ) -> None:
        super().__init__(
            "insights", axes=INSIGHT_AXES, capacity=capacity, policy=InsertPolicy.HEAD
        )
        self._client = client
        self._navigator = navigator
        self.channel = channel
        self.resolved: ListenerRegistry[StreamItem] = ListenerRegistry()
        self._dispatcher = self._new_dispatcher()

    @property
    def state(self) -> ConnectionState:
        return self.channel.state

    @property
    def connection_error(self) -> str | None:
        return self.channel.error

    async def refresh(self) -> bool:
        return await self._refresh(self._client.get_insights)

    async def start(self) -> None:
        """Subscribe, then load the snapshot; pushes that land meanwhile are replayed."""

        self.stop()
        self._dispatcher = self._new_dispatcher()
        self._handle = self.channel.subscribe(self._on_insight)
        await self.refresh()

    def stop(self) -> None:
        self._dispatcher.close()
        super().stop()

    async def execute(self, item: StreamItem, action_id: str) -> DispatchResult:
        result = await self._dispatcher.execute(item, action_id)
        if result is DispatchResult.REMOVED:
            self._publish()
        return result

    def _new_dispatcher(self) -> ActionDispatcher:
        return ActionDispatcher(
            self.reconciler,
            promoter=self._client,
            navigator=self._navigator,
            on_resolved=self.resolved.notify,
        )

    def _on_insight(self, item: StreamItem) -> None:
        if self.reconciler.apply_item(item):
            self._publish()


class EventFeed(Feed):
    """Raw exec/connect/file events plus rule reload notifications."""

    def __init__(self, channel: PushChannel[EventMessage], *, capacity: int) -> None:
        super().__init__("events", axes=EVENT_AXES, capacity=capacity, policy=InsertPolicy.HEAD)
        self.channel = channel
        self._reloads: ListenerRegistry[RulesReload] = ListenerRegistry()

    @property
    def state(self) -> ConnectionState:
        return self.channel.state

    def on_rules_reload(self, callback: Callable[[RulesReload], None]) -> SubscriptionHandle:
        return self._reloads.add(callback)

    def start(self) -> None:
        self.stop()
        self._handle = self.channel.subscribe(self._on_message)

    def _on_message(self, message: EventMessage) -> None:
        match message:
            case RulesReload():
                log.info("Backend reloaded detection rules")
                self._reloads.notify(message)
            case StreamItem():
                if self.reconciler.apply_item(message):
                    self._publish()


class RateFeed:
    """Latest per-second event rates."""

    def __init__(self, channel: PushChannel[EventRatesPayload]) -> None:
        self.channel = channel
        self.latest: EventRatesPayload | None = None
        self._updates: ListenerRegistry[EventRatesPayload] = ListenerRegistry()
        self._handle: SubscriptionHandle | None = None

    @property
    def state(self) -> ConnectionState:
        return self.channel.state

    def on_update(self, callback: Callable[[EventRatesPayload], None]) -> SubscriptionHandle:
        return self._updates.add(callback)

    def start(self) -> None:
        self.stop()
        self._handle = self.channel.subscribe(self._on_rates)

    def stop(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.release()

    def _on_rates(self, rates: EventRatesPayload) -> None:
        self.latest = rates
        self._updates.notify(rates)


class TelemetryContext:
    """Runtime state for one operator session.

    Owns the HTTP clients, the live channels, the feeds built on them and the
    assistant conversation. Use it as an async context manager so every channel
    and client is released on exit.
    """

    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        navigator: Navigator | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.config = config or get_backend_config()
        self.client = BackendClient(self.config, transport=transport)
        self.assistant = AssistantChannel(self.config, transport=transport)
        self.conversation = Conversation()

        self.alert_channel = alert_channel(self.client, sleep=sleep)
        self.insight_channel = insight_channel(self.client, sleep=sleep)
        self.event_channel = event_channel(self.client, sleep=sleep)
        self.rate_channel = rate_channel(self.client, sleep=sleep)

        capacity = self.config.buffer_capacity
        self.alerts = AlertFeed(self.client, self.alert_channel, capacity=capacity)
        self.insights = InsightFeed(
            self.client, self.insight_channel, capacity=capacity, navigator=navigator
        )
        self.events = EventFeed(self.event_channel, capacity=capacity)
        self.rates = RateFeed(self.rate_channel)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> TelemetryContext:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.alerts.stop()
        self.insights.stop()
        self.events.stop()
        self.rates.stop()
        await self.alert_channel.aclose()
        await self.insight_channel.aclose()
        await self.event_channel.aclose()
        await self.rate_channel.aclose()
        await self.client.aclose()
        await self.assistant.aclose()
        log.debug("Telemetry context closed")
