"""Textual messages a :class:`~nanocode_acp.acp.client.NanocodeAgent` posts to its context.

Every message derives from :class:`AgentMessage`, so a context can route the
whole family with one handler. ACP schema objects are passed through untouched.
"""

from __future__ import annotations

import asyncio  # noqa: TC003 (dataclass field annotation)
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple, Protocol

from textual.message import Message

from nanocode_acp.debug_log import log
from nanocode_acp.limits import MESSAGE_BUFFER, RESPONSE_BUFFER

if TYPE_CHECKING:
    from acp.schema import AvailableCommand, PermissionOption, PlanEntry
    from acp.schema import ToolCall as AcpToolCall
    from acp.schema import ToolCallUpdate as AcpToolCallUpdate


class Mode(NamedTuple):
    id: str
    name: str
    description: str | None


class Answer(NamedTuple):
    """Chosen permission option id; an empty id cancels the request."""

    id: str


class AgentMessage(Message):
    """Root of every message posted by the agent client."""


# --- lifecycle ---


@dataclass(slots=True)
class AgentReady(AgentMessage):
    pass


@dataclass(slots=True)
class AgentFail(AgentMessage):
    """The agent could not start, crashed, or rejected a request.

    ``message`` is a short summary for display; ``details`` carries the
    underlying error or a stderr excerpt.
    """

    message: str
    details: str = ""


@dataclass(slots=True)
class AgentComplete(AgentMessage):
    """A prompt turn has finished."""


# --- streamed content ---


@dataclass(slots=True)
class ContentChunk(AgentMessage):
    content_type: str
    text: str


@dataclass(slots=True)
class AgentUpdate(ContentChunk):
    """Visible reply text (``content_type`` is ``"text"``) or host notices such as ``"welcome"``."""


@dataclass(slots=True)
class Thinking(ContentChunk):
    pass


@dataclass(slots=True)
class ToolCall(AgentMessage):
    tool_call: AcpToolCall


@dataclass(slots=True)
class ToolCallUpdate(AgentMessage):
    """``tool_call`` is the merged record after ``update`` was applied."""

    tool_call: AcpToolCall
    update: AcpToolCallUpdate


@dataclass(slots=True)
class Plan(AgentMessage):
    entries: list[PlanEntry]


@dataclass(slots=True)
class RequestPermission(AgentMessage):
    """The agent wants to run a tool call.

    The context answers by resolving ``result_future`` with an :class:`Answer`.
    """

    options: list[PermissionOption]
    tool_call: AcpToolCall | AcpToolCallUpdate
    result_future: asyncio.Future[Answer]


# --- session state ---


@dataclass(slots=True)
class SetModes(AgentMessage):
    current_mode: str
    modes: dict[str, Mode]


@dataclass(slots=True)
class ModeUpdate(AgentMessage):
    current_mode: str


@dataclass(slots=True)
class AvailableCommandsUpdate(AgentMessage):
    commands: list[AvailableCommand]


class MessageTarget(Protocol):
    def post_message(self, message: Message) -> bool: ...


class Transcript:
    """Bounded record of what the agent has said.

    Holds the reply text of the current turn and the messages posted so far,
    so a context attached late can be brought up to date.
    """

    def __init__(self) -> None:
        self._chunks: deque[str] = deque(maxlen=RESPONSE_BUFFER)
        self.history: deque[Message] = deque(maxlen=MESSAGE_BUFFER)

    def add_text(self, text: str) -> None:
        log.debug("Agent text", chars=len(text))
        self._chunks.append(text)

    def remember(self, message: Message) -> None:
        self.history.append(message)

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    def start_turn(self) -> None:
        self._chunks.clear()

    def reset(self) -> None:
        self._chunks.clear()
        self.history.clear()

    def replay(self, target: MessageTarget) -> int:
        for message in self.history:
            target.post_message(message)
        return len(self.history)
