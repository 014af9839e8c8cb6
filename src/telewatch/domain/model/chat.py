"""Conversation state for the assistant channel."""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field

from .enums import ChatRole

_SESSION_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    return int(time.time() * 1000)


def new_session_id() -> str:
    """Return a client-generated session id of the form ``chat-<ms>-<suffix>``."""

    suffix = "".join(secrets.choice(_SESSION_ALPHABET) for _ in range(9))
    return f"chat-{now_ms()}-{suffix}"


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: ChatRole
    content: str
    timestamp: int = field(default_factory=now_ms)


@dataclass(slots=True)
class Conversation:
    """One chat session owned by a runtime context.

    The session id starts out client-generated; the first successful response may
    replace it with a server-issued value, which is then used for all later calls.
    """

    session_id: str = field(default_factory=new_session_id)
    transcript: list[ChatMessage] = field(default_factory=list[ChatMessage])
    context_summary: str = ""
    server_issued: bool = False

    @property
    def has_messages(self) -> bool:
        return bool(self.transcript)

    def append(self, message: ChatMessage) -> None:
        self.transcript.append(message)

    def discard(self, message: ChatMessage) -> None:
        """Drop ``message`` if it is still in the transcript (used to undo optimistic sends)."""

        for index in range(len(self.transcript) - 1, -1, -1):
            if self.transcript[index] is message:
                del self.transcript[index]
                return

    def adopt_session_id(self, session_id: str | None) -> None:
        if not session_id:
            return
        self.session_id = session_id
        self.server_issued = True

    def replace_transcript(self, messages: list[ChatMessage]) -> None:
        self.transcript = list(messages)

    def reset(self) -> None:
        self.session_id = new_session_id()
        self.transcript = []
        self.context_summary = ""
        self.server_issued = False
