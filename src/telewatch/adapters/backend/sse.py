"""Server-sent event decoding over httpx's line iterator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    import httpx

DEFAULT_EVENT = "message"


@dataclass(frozen=True, slots=True)
class SseEvent:
    event: str
    data: str
    id: str | None = None


class SseDecoder:
    """Assemble ``event:``/``data:``/``id:`` lines into events on each blank line."""

    def __init__(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []
        self._id: str | None = None

    def decode(self, line: str) -> SseEvent | None:
        line = line.rstrip("\r\n")
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        value = value.removeprefix(" ")
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        # "retry" and unknown fields are ignored.
        return None

    def decode_lines(self, lines: Iterable[str]) -> list[SseEvent]:
        return [event for line in lines if (event := self.decode(line)) is not None]

    def close(self) -> SseEvent | None:
        """Flush a final frame that was not followed by a blank line."""

        return self._dispatch()

    def _dispatch(self) -> SseEvent | None:
        if not self._data:
            self._event = None
            return None
        event = SseEvent(event=self._event or DEFAULT_EVENT, data="\n".join(self._data), id=self._id)
        self._event = None
        self._data = []
        return event


async def iter_sse_events(response: httpx.Response) -> AsyncIterator[SseEvent]:
    decoder = SseDecoder()
    async for line in response.aiter_lines():
        event = decoder.decode(line)
        if event is not None:
            yield event
    event = decoder.close()
    if event is not None:
        yield event
