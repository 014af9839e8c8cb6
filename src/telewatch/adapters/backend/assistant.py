"""Request-response channel to the assistant endpoints.

Every call shares one ``loading`` flag and one ``error`` slot. A call clears the
previous error, marks the channel as loading, and either returns the decoded payload
or stores a readable error message and returns ``None``.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any, Literal, cast

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from telewatch.adapters.http_resilience import ResilientClient
from telewatch.config import BackendConfig
from telewatch.domain.errors import ParseError, RequestError
from telewatch.domain.model import ChatMessage, ChatRole, now_ms

from .client import decode_json, ensure_success, extract_error_message, validate
from .schema import (
    AnalyzeRequest,
    AnalyzeResponse,
    AskInsightRequest,
    AskInsightResponse,
    AssistantStatusPayload,
    ChatHistoryMessage,
    ChatRequest,
    ChatResponsePayload,
    ChatStreamFrame,
    DiagnosisPayload,
    ExplainRequest,
    ExplainResponse,
    RuleGenContext,
    RuleGenRequest,
    RuleGenResponse,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping, Sequence
    from types import TracebackType

    from telewatch.adapters.http_resilience import RequestOptions
    from telewatch.domain.model import Conversation

log = getLogger(__name__)

_HISTORY_ADAPTER = TypeAdapter(list[ChatHistoryMessage])
_DATA_PREFIX = "data:"


def parse_chat_frame(line: str) -> ChatStreamFrame | None:
    """Decode one ``data: <json>`` line; other lines (blank, comments) yield ``None``."""

    if not line.startswith(_DATA_PREFIX):
        return None
    body = line[len(_DATA_PREFIX) :].strip()
    if not body:
        return None
    try:
        return ChatStreamFrame.model_validate_json(body)
    except ValidationError as exc:
        raise ParseError(f"Malformed chat frame: {exc.error_count()} error(s)", raw=body) from exc


async def iter_chat_frames(response: httpx.Response) -> AsyncIterator[ChatStreamFrame]:
    """Yield chat frames from a streaming body; httpx reassembles lines split across chunks."""

    async for line in response.aiter_lines():
        frame = _safe_frame(line)
        if frame is not None:
            yield frame


def _safe_frame(line: str) -> ChatStreamFrame | None:
    try:
        return parse_chat_frame(line)
    except ParseError as exc:
        log.warning("Dropping chat frame: %s", exc)
        return None


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


class AssistantChannel:
    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or BackendConfig()
        self._client = ResilientClient(self.config.assistant, transport=transport)
        self.loading = False
        self.error: str | None = None

    async def __aenter__(self) -> AssistantChannel:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request[ModelT: BaseModel](
        self,
        model: type[ModelT],
        method: str,
        path: str,
        **kwargs: Any,
    ) -> ModelT | None:
        self.error = None
        self.loading = True
        try:
            response = await self._client.request(method, path, **cast("RequestOptions", kwargs))
            return validate(model, response)
        except RequestError as exc:
            self.error = exc.message
            log.warning("%s %s failed: %s", method, path, exc.message)
            return None
        except httpx.TransportError as exc:
            self.error = str(exc) or type(exc).__name__
            log.warning("%s %s failed: %s", method, path, self.error)
            return None
        finally:
            self.loading = False

    # --- one-shot calls ---------------------------------------------------

    async def generate_rule(
        self,
        description: str,
        *,
        context: RuleGenContext | None = None,
        examples: Sequence[Any] | None = None,
    ) -> RuleGenResponse | None:
        request = RuleGenRequest(
            description=description,
            context=context,
            examples=list(examples) if examples is not None else None,
        )
        return await self._request(
            RuleGenResponse, "POST", "/api/ai/generate-rule", json=_dump(request)
        )

    async def explain_event(
        self,
        *,
        event_id: str | None = None,
        event_data: Mapping[str, Any] | None = None,
        question: str | None = None,
    ) -> ExplainResponse | None:
        request = ExplainRequest(
            event_id=event_id,
            event_data=dict(event_data) if event_data is not None else None,
            question=question,
        )
        return await self._request(ExplainResponse, "POST", "/api/ai/explain", json=_dump(request))

    async def analyze_context(
        self,
        kind: Literal["process", "workload", "rule"],
        identifier: str,
    ) -> AnalyzeResponse | None:
        request = AnalyzeRequest(type=kind, id=identifier)
        return await self._request(AnalyzeResponse, "POST", "/api/ai/analyze", json=_dump(request))

    async def ask_about_insight(
        self,
        insight: Mapping[str, Any],
        question: str,
    ) -> AskInsightResponse | None:
        request = AskInsightRequest(insight=dict(insight), question=question)
        return await self._request(
            AskInsightResponse, "POST", "/api/ai/sentinel/ask", json=_dump(request)
        )

    async def diagnose(self) -> DiagnosisPayload | None:
        return await self._request(DiagnosisPayload, "GET", "/api/ai/diagnose")

    async def get_status(self) -> AssistantStatusPayload | None:
        """Report assistant availability; any failure reads as unavailable."""

        try:
            response = await self._client.get("/api/ai/status")
            return validate(AssistantStatusPayload, response)
        except (RequestError, httpx.TransportError) as exc:
            log.debug("Assistant status unavailable: %s", exc)
            return None

    # --- conversation -----------------------------------------------------

    async def chat(self, conversation: Conversation, content: str) -> ChatResponsePayload | None:
        text = content.strip()
        if not text or self.loading:
            return None

        sent = ChatMessage(ChatRole.USER, text)
        conversation.append(sent)
        request = ChatRequest(message=text, sessionId=conversation.session_id)
        result = await self._request(
            ChatResponsePayload, "POST", "/api/ai/chat", json=_dump(request)
        )
        if result is None:
            conversation.discard(sent)
            return None

        conversation.adopt_session_id(result.session_id)
        conversation.context_summary = result.context_summary
        conversation.append(
            ChatMessage(ChatRole.ASSISTANT, result.message, result.timestamp or now_ms())
        )
        return result

    async def chat_stream(self, conversation: Conversation, content: str) -> AsyncIterator[str]:
        """Send ``content`` and yield reply tokens as they arrive.

        The complete reply is appended to the transcript once the stream finishes.
        On failure the optimistic user message is withdrawn and ``error`` is set. It is
        also withdrawn when the caller stops iterating before the reply finishes.
        """

        text = content.strip()
        if not text or self.loading:
            return

        sent = ChatMessage(ChatRole.USER, text)
        conversation.append(sent)
        request = ChatRequest(message=text, sessionId=conversation.session_id)
        tokens: list[str] = []
        finished = False
        self.error = None
        self.loading = True
        try:
            async with self._client.stream(
                "POST",
                "/api/ai/chat/stream",
                json=_dump(request),
                headers={"Accept": "text/event-stream"},
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise RequestError(
                        extract_error_message(response), status=response.status_code
                    )
                async for frame in iter_chat_frames(response):
                    conversation.adopt_session_id(frame.session_id)
                    if frame.error:
                        raise RequestError(frame.error)
                    if frame.content:
                        tokens.append(frame.content)
                        yield frame.content
                    if frame.is_terminal:
                        break
            finished = True
        except RequestError as exc:
            self.error = exc.message
        except httpx.TransportError as exc:
            self.error = str(exc) or type(exc).__name__
        finally:
            self.loading = False
            if not finished:
                conversation.discard(sent)

        if self.error is not None:
            log.warning("Chat stream failed: %s", self.error)
            return
        conversation.append(ChatMessage(ChatRole.ASSISTANT, "".join(tokens)))

    async def load_history(self, conversation: Conversation) -> bool:
        """Replace the transcript with the server copy. Failures are logged only."""

        try:
            response = await self._client.get(
                "/api/ai/chat/history", params={"sessionId": conversation.session_id}
            )
            payload = decode_json(response)
            history = _HISTORY_ADAPTER.validate_python(payload or [])
        except (RequestError, httpx.TransportError, ValidationError) as exc:
            log.error("Failed to load chat history: %s", exc)
            return False
        if not history:
            return False
        conversation.replace_transcript(
            [ChatMessage(ChatRole(entry.role), entry.content, entry.timestamp) for entry in history]
        )
        return True

    async def clear_chat(self, conversation: Conversation) -> None:
        """Clear the server session, then start a fresh local one regardless of the outcome."""

        try:
            response = await self._client.post(
                "/api/ai/chat/clear", json={"sessionId": conversation.session_id}
            )
            ensure_success(response)
        except (RequestError, httpx.TransportError) as exc:
            log.error("Failed to clear chat: %s", exc)
        conversation.reset()
