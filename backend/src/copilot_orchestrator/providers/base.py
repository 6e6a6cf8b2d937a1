"""Abstract LLM provider interface and the provider-neutral chat message."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from pydantic import BaseModel

from ..errors import ModelResponseMalformed
from ..models import (
    AssistantMessage,
    FinalText,
    ModelResponse,
    ResponseFragment,
    ToolCallBatch,
    ToolCallRequest,
    ToolInvocation,
    ToolResult,
    Turn,
    UserMessage,
)


class Message(BaseModel):
    """A single chat message as sent to a provider."""

    role: str  # "system" | "user" | "assistant" | "tool"
    content: str = ""
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None
    name: str | None = None


def build_chat_messages(system_prompt: str, history: list[Turn]) -> list[Message]:
    """Flatten session turns into chat messages.

    The ToolInvocations of one model response become a single assistant message
    carrying every call; failure notices are not part of the model's context.
    """
    messages: list[Message] = []
    if system_prompt:
        messages.append(Message(role="system", content=system_prompt))
    for turn in history:
        if isinstance(turn, UserMessage):
            messages.append(Message(role="user", content=turn.text))
        elif isinstance(turn, AssistantMessage):
            messages.append(Message(role="assistant", content=turn.model_text()))
        elif isinstance(turn, ToolInvocation):
            call = {"id": turn.call_id, "name": turn.tool_name, "params": turn.arguments}
            last = messages[-1] if messages else None
            if last is not None and last.role == "assistant" and last.tool_calls is not None and not turn.preamble:
                last.tool_calls.append(call)
            else:
                messages.append(Message(role="assistant", content=turn.preamble, tool_calls=[call]))
        elif isinstance(turn, ToolResult):
            messages.append(
                Message(role="tool", content=turn.model_text(), tool_call_id=turn.call_id, name=turn.tool_name)
            )
    return messages


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:16]}"


def make_response(text: str, tool_calls: list[dict[str, Any]]) -> ModelResponse:
    """Build a tagged response from raw text and ``{"id", "name", "params"}`` dicts."""
    if not tool_calls:
        if not text.strip():
            raise ModelResponseMalformed("Model returned neither text nor tool calls")
        return FinalText(text=text)
    calls: list[ToolCallRequest] = []
    seen: set[str] = set()
    for tc in tool_calls:
        name = tc.get("name") or ""
        if not name:
            raise ModelResponseMalformed("Model requested a tool call without a name")
        params = tc.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ModelResponseMalformed(f"Arguments for {name} are not an object")
        call_id = tc.get("id") or new_call_id()
        if call_id in seen:
            raise ModelResponseMalformed(f"Duplicate tool call id: {call_id}")
        seen.add(call_id)
        calls.append(ToolCallRequest(call_id=call_id, name=name, arguments=params))
    return ToolCallBatch(calls=calls, text=text)


class LLMProvider(ABC):
    """
    Abstract LLM provider. Implement this to plug in any backend (Gemini, OpenAI, Ollama, ...).

    The orchestrator only depends on this interface.
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> ModelResponse:
        """Non-streaming chat. Returns FinalText or a ToolCallBatch."""
        ...

    @abstractmethod
    def stream_chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ResponseFragment]:
        """Stream chat; yields phase-tagged fragments and a final terminal fragment."""
        ...

    async def aclose(self) -> None:
        """Release network clients."""
