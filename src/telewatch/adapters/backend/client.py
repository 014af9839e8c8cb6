"""HTTP client for the telemetry backend REST API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from telewatch.adapters.http_resilience import ResilientClient
from telewatch.config import BackendConfig
from telewatch.domain.errors import ParseError, RequestError, TransportError

from .schema import (
    DetectionRulePayload,
    ErrorPayload,
    GeneratedRulePayload,
    InsightsResponse,
    LearningStatusPayload,
    ProcessInfoPayload,
    SystemStatsPayload,
    WorkloadPayload,
)
from .translator import insight_to_item, parse_alert_listing

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence
    from types import TracebackType

    from telewatch.adapters.http_resilience import RequestOptions
    from telewatch.domain.model import StreamItem

log = getLogger(__name__)

_RULES_ADAPTER = TypeAdapter(list[DetectionRulePayload])
_WORKLOADS_ADAPTER = TypeAdapter(list[WorkloadPayload])
_ANCESTORS_ADAPTER = TypeAdapter(list[ProcessInfoPayload])
_GENERATED_RULES_ADAPTER = TypeAdapter(list[GeneratedRulePayload])


def extract_error_message(response: httpx.Response) -> str:
    """Describe a failed response.

    Prefers a structured ``error`` (then ``message``) field, then the raw body text,
    then ``HTTP <status>``.
    """

    text = response.text.strip()
    if text:
        try:
            payload = ErrorPayload.model_validate_json(text)
        except ValidationError:
            payload = None
        if payload is not None and (payload.error or payload.message):
            return cast(str, payload.error or payload.message)
        return text
    return f"HTTP {response.status_code}"


def ensure_success(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise RequestError(extract_error_message(response), status=response.status_code)


def decode_json(response: httpx.Response) -> Any:
    """Return the decoded JSON body of a successful response (``None`` when empty)."""

    ensure_success(response)
    if not response.content.strip():
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise RequestError("Malformed response body", status=response.status_code) from exc


def validate[ModelT: BaseModel](model: type[ModelT], response: httpx.Response) -> ModelT:
    payload = decode_json(response)
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RequestError(
            f"Unexpected {model.__name__} payload", status=response.status_code
        ) from exc


def _validate_list[T](adapter: TypeAdapter[list[T]], response: httpx.Response) -> list[T]:
    payload = decode_json(response)
    if payload is None:
        return []
    try:
        return adapter.validate_python(payload)
    except ValidationError as exc:
        raise RequestError("Unexpected list payload", status=response.status_code) from exc


class BackendClient:
    """Typed access to the backend endpoints.

    Live endpoints go through an uncached client; slowly changing reference data
    (rules, workloads, probe statistics) through a short-lived response cache.
    """

    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or BackendConfig()
        self._live = ResilientClient(self.config.live, transport=transport)
        self._reference = ResilientClient(self.config.reference, transport=transport)

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._live.aclose()
        await self._reference.aclose()

    # --- transport helpers ------------------------------------------------

    async def _call(
        self,
        client: ResilientClient,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await client.request(method, path, **cast("RequestOptions", kwargs))
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

    @asynccontextmanager
    async def open_stream(
        self,
        path: str,
        *,
        method: str = "GET",
        json: object | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a long-lived streaming response on the live client."""

        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        timeout = httpx.Timeout(self.config.timeout_seconds, read=None)
        try:
            async with self._live.stream(
                method, path, headers=headers, json=json, timeout=timeout
            ) as response:
                yield response
        except httpx.TransportError as exc:
            raise TransportError(f"Stream {path} failed: {exc}") from exc

    # --- live telemetry ---------------------------------------------------

    async def get_alerts(self) -> list[StreamItem]:
        response = await self._call(self._live, "GET", "/api/alerts")
        try:
            return parse_alert_listing(decode_json(response))
        except ParseError as exc:
            raise RequestError(str(exc), status=response.status_code) from exc

    async def get_insights(self, limit: int | None = None) -> list[StreamItem]:
        effective_limit = limit or self.config.insights_limit
        response = await self._call(
            self._live, "GET", "/api/ai/sentinel/insights", params={"limit": effective_limit}
        )
        listing = validate(InsightsResponse, response)
        return [insight_to_item(insight) for insight in listing.insights or ()]

    async def get_stats(self) -> SystemStatsPayload:
        response = await self._call(self._live, "GET", "/api/stats")
        return validate(SystemStatsPayload, response)

    # --- reference data ---------------------------------------------------

    async def get_rules(self) -> list[DetectionRulePayload]:
        response = await self._call(self._reference, "GET", "/api/rules")
        return _validate_list(_RULES_ADAPTER, response)

    async def get_workloads(self) -> list[WorkloadPayload]:
        response = await self._call(self._reference, "GET", "/api/workloads")
        return _validate_list(_WORKLOADS_ADAPTER, response)

    async def get_workload(self, workload_id: str) -> WorkloadPayload:
        response = await self._call(
            self._reference, "GET", f"/api/workloads/{quote(workload_id, safe='')}"
        )
        return validate(WorkloadPayload, response)

    async def get_ancestors(self, pid: int) -> list[ProcessInfoPayload]:
        response = await self._call(self._reference, "GET", f"/api/ancestors/{pid}")
        return _validate_list(_ANCESTORS_ADAPTER, response)

    async def get_probe_stats(self) -> dict[str, Any]:
        response = await self._call(self._reference, "GET", "/api/probes/stats")
        payload = decode_json(response)
        if payload is None:
            return {}
        if not isinstance(payload, dict):
            raise RequestError("Unexpected probe statistics payload", status=response.status_code)
        return cast(dict[str, Any], payload)

    # --- learning mode ----------------------------------------------------

    async def get_learning_status(self) -> LearningStatusPayload:
        response = await self._call(self._live, "GET", "/api/learning/status")
        return validate(LearningStatusPayload, response)

    async def start_learning(self, duration_seconds: int) -> None:
        response = await self._call(
            self._live, "POST", "/api/learning/start", json={"duration": duration_seconds}
        )
        ensure_success(response)

    async def stop_learning(self) -> list[GeneratedRulePayload]:
        response = await self._call(self._live, "POST", "/api/learning/stop")
        return _validate_list(_GENERATED_RULES_ADAPTER, response)

    async def apply_learning(self, indices: Sequence[int]) -> None:
        response = await self._call(
            self._live, "POST", "/api/learning/apply", json={"indices": list(indices)}
        )
        ensure_success(response)

    # --- actions ----------------------------------------------------------

    async def promote_rule(self, rule_name: str) -> None:
        response = await self._call(
            self._live, "POST", f"/api/rules/{quote(rule_name, safe='')}/promote"
        )
        ensure_success(response)
        log.info("Promoted rule %s", rule_name)
