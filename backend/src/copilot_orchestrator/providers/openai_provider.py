"""OpenAI LLM provider implementation for the orchestrator."""

from __future__ import annotations

import json
import os
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from ..errors import ModelResponseMalformed
from ..models import ModelResponse, Phase, ResponseFragment
from .base import LLMProvider, Message, make_response


def _parse_arguments(name: str, raw_args: Any) -> dict[str, Any]:
    if isinstance(raw_args, dict):
        return raw_args
    if not raw_args:
        return {}
    try:
        params = json.loads(raw_args)
    except (TypeError, ValueError) as exc:
        raise ModelResponseMalformed(f"Arguments for {name} are not valid JSON") from exc
    if not isinstance(params, dict):
        raise ModelResponseMalformed(f"Arguments for {name} are not an object")
    return params


class OpenAIProvider(LLMProvider):
    """OpenAI-backed LLM provider using the Chat Completions API."""

    def __init__(
        self,
        default_model: str = "gpt-4.1-nano",
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key = api_key or os.getenv("OPENAI_API_KEY") or ""
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL")
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self._client:
            kwargs: dict[str, Any] = {"api_key": self.api_key}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    @staticmethod
    def _to_openai_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """Convert chat messages into OpenAI chat message dicts."""
        out: list[dict[str, Any]] = []
        for m in messages:
            base: dict[str, Any] = {"role": m.role, "content": m.content or ""}
            # Assistant tool calls
            if m.role == "assistant" and m.tool_calls:
                base["tool_calls"] = [
                    {
                        "id": tc.get("id") or "",
                        "type": "function",
                        "function": {
                            "name": tc.get("name", ""),
                            "arguments": json.dumps(tc.get("params") or {}, default=str),
                        },
                    }
                    for tc in m.tool_calls
                ]
            # Tool response messages
            if m.role == "tool" and m.tool_call_id:
                base["tool_call_id"] = m.tool_call_id
            out.append(base)
        return out

    @staticmethod
    def _parse_tool_calls(choice_message: Any) -> list[dict[str, Any]]:
        """Map OpenAI tool_calls into orchestrator tool_call dicts."""
        tool_calls: list[dict[str, Any]] = []
        for tc in getattr(choice_message, "tool_calls", []) or []:
            fn = getattr(tc, "function", None)
            name = getattr(fn, "name", "") if fn is not None else ""
            raw_args = getattr(fn, "arguments", {}) if fn is not None else {}
            tool_calls.append(
                {
                    "id": getattr(tc, "id", "") or "",
                    "name": name,
                    "params": _parse_arguments(name, raw_args),
                }
            )
        return tool_calls

    def _params(self, messages: list[Message], model: str | None, tools: list[dict[str, Any]] | None, **kwargs: Any) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": self._to_openai_messages(messages),
            **{k: v for k, v in kwargs.items() if v is not None},
        }
        if tools:
            params["tools"] = tools
        return params

    async def chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> ModelResponse:
        """Non-streaming chat using OpenAI Chat Completions."""
        client = self._get_client()
        resp = await client.chat.completions.create(**self._params(messages, model, tools, **kwargs))
        if not resp.choices:
            raise ModelResponseMalformed("OpenAI response has no choices")

        choice = resp.choices[0].message
        content = choice.content or ""
        return make_response(content, self._parse_tool_calls(choice))

    async def stream_chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ResponseFragment]:
        """Streaming chat; yields tagged fragments and a final done fragment."""
        client = self._get_client()
        stream = await client.chat.completions.create(
            **self._params(messages, model, tools, stream=True, **kwargs)
        )
        content_parts: list[str] = []
        tool_calls_buffer: dict[int, dict[str, Any]] = {}

        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = getattr(chunk.choices[0], "delta", None)
            if delta is None:
                continue

            # Text deltas
            if getattr(delta, "content", None):
                content_parts.append(delta.content)
                yield ResponseFragment(delta=delta.content, phase=Phase.ASSISTANT_TEXT)

            # Tool call deltas
            for tc in getattr(delta, "tool_calls", None) or []:
                idx = getattr(tc, "index", 0)
                buf = tool_calls_buffer.setdefault(idx, {"id": "", "name": "", "arguments": ""})
                if getattr(tc, "id", None):
                    buf["id"] = tc.id
                fn = getattr(tc, "function", None)
                if fn is None:
                    continue
                if getattr(fn, "name", None):
                    buf["name"] = fn.name
                    yield ResponseFragment(delta=fn.name, phase=Phase.TOOL_INTERNAL)
                if getattr(fn, "arguments", None):
                    buf["arguments"] += fn.arguments
                    yield ResponseFragment(delta=fn.arguments, phase=Phase.TOOL_INTERNAL)

        tool_calls = [
            {"id": buf["id"], "name": buf["name"], "params": _parse_arguments(buf["name"], buf["arguments"])}
            for _, buf in sorted(tool_calls_buffer.items())
        ]
        yield ResponseFragment(done=True, response=make_response("".join(content_parts), tool_calls))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
