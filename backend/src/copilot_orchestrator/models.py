"""Data models for conversation turns, sessions, model responses and fragments."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------


class UserMessage(BaseModel):
    """Text the end user sent."""

    kind: Literal["user"] = "user"
    text: str
    created_at: str = Field(default_factory=_iso_now)


class AssistantMessage(BaseModel):
    """The assistant's reply for one user turn.

    ``text`` is the whole visible reply. When the model spoke in more than one
    call during the turn (a short preamble before tools, then the answer),
    ``content_blocks`` keeps each call's text separately.
    """

    kind: Literal["assistant"] = "assistant"
    text: str
    content_blocks: list[dict[str, Any]] | None = None
    created_at: str = Field(default_factory=_iso_now)

    def model_text(self) -> str:
        """Text of the final model call, which is what the model itself produced last."""
        if self.content_blocks:
            return str(self.content_blocks[-1].get("text", ""))
        return self.text


class ToolInvocation(BaseModel):
    """A tool call the model requested."""

    kind: Literal["tool_invocation"] = "tool_invocation"
    call_id: str
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    preamble: str = ""  # text the model produced alongside the batch (first call of a batch only)
    created_at: str = Field(default_factory=_iso_now)


class ToolResult(BaseModel):
    """Outcome of one tool call, correlated by ``call_id``."""

    kind: Literal["tool_result"] = "tool_result"
    call_id: str
    tool_name: str
    content: str = ""
    error: str | None = None
    created_at: str = Field(default_factory=_iso_now)

    @property
    def ok(self) -> bool:
        return self.error is None

    def model_text(self) -> str:
        return self.content if self.ok else f"Error: {self.error}"


class FailureNotice(BaseModel):
    """Recorded when a user turn ends in Failed; never sent back to the model."""

    kind: Literal["failure"] = "failure"
    text: str
    error_code: str
    created_at: str = Field(default_factory=_iso_now)


Turn = Annotated[
    Union[UserMessage, AssistantMessage, ToolInvocation, ToolResult, FailureNotice],
    Field(discriminator="kind"),
]

TURN_LIST_ADAPTER: TypeAdapter[list[Turn]] = TypeAdapter(list[Turn])


def visible_transcript(turns: list[Turn]) -> list[UserMessage | AssistantMessage]:
    """The user-facing subsequence of a session: user and assistant messages only."""
    return [t for t in turns if isinstance(t, (UserMessage, AssistantMessage))]


def unresolved_call_ids(turns: list[Turn]) -> list[str]:
    """Call ids of ToolInvocations without a matching ToolResult before the next user message.

    Also reports results that answer no pending invocation (prefixed ``result:``).
    """
    problems: list[str] = []
    pending: list[str] = []
    for turn in turns:
        if isinstance(turn, UserMessage):
            problems.extend(pending)
            pending = []
        elif isinstance(turn, ToolInvocation):
            if turn.call_id in pending:
                problems.append(turn.call_id)
            pending.append(turn.call_id)
        elif isinstance(turn, ToolResult):
            if turn.call_id in pending:
                pending.remove(turn.call_id)
            else:
                problems.append(f"result:{turn.call_id}")
    problems.extend(pending)
    return problems


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SessionData(BaseModel):
    """Session payload stored by durable session backends."""

    session_id: str
    turns: list[Turn] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Model responses
# ---------------------------------------------------------------------------


@dataclass
class ToolCallRequest:
    """One tool call requested by the model."""

    call_id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class FinalText:
    """The model answered with text and requested no tools."""

    text: str


@dataclass
class ToolCallBatch:
    """The model requested one or more tool calls (possibly with some text)."""

    calls: list[ToolCallRequest]
    text: str = ""


ModelResponse = Union[FinalText, ToolCallBatch]


class Phase(str, enum.Enum):
    """Which part of a model response a streamed fragment belongs to."""

    ASSISTANT_TEXT = "assistant-text"
    TOOL_INTERNAL = "tool-internal"


@dataclass
class ResponseFragment:
    """One incremental piece of a streamed model response.

    The terminal fragment (``done=True``) carries the parsed response.
    """

    delta: str = ""
    phase: Phase = Phase.ASSISTANT_TEXT
    done: bool = False
    response: ModelResponse | None = None
