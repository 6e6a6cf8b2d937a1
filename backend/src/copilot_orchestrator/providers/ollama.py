"""Ollama LLM provider implementation."""

from __future__ import annotations

import json
import os
from collections.abc import AsyncIterator
from typing import Any

from ollama import AsyncClient

from ..errors import ModelResponseMalformed
from ..models import ModelResponse, Phase, ResponseFragment
from .base import LLMProvider, Message, make_response, new_call_id


def _message_to_chat(m: Message) -> dict[str, Any]:
    """Convert our Message to Ollama chat format."""
    out: dict[str, Any] = {"role": m.role, "content": m.content or ""}
    if m.tool_calls:
        out["tool_calls"] = [
            {
                "function": {
                    "name": tc.get("name", ""),
                    "arguments": tc.get("params") or {},
                },
            }
            for tc in m.tool_calls
        ]
    if m.role == "tool" and m.name:
        out["tool_name"] = m.name
    return out


class OllamaProvider(LLMProvider):
    """Ollama-backed LLM provider."""

    def __init__(self, default_model: str = "llama3.2", base_url: str | None = None):
        self.default_model = default_model
        self.base_url = base_url or os.getenv("OLLAMA_HOST") or "http://localhost:11434"
        self._client: AsyncClient | None = None

    def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = AsyncClient(host=self.base_url)
        return self._client

    async def chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> ModelResponse:
        response: ModelResponse | None = None
        async for fragment in self.stream_chat(messages, model=model, tools=tools, **kwargs):
            if fragment.done:
                response = fragment.response
        if response is None:
            raise ModelResponseMalformed("Ollama stream ended without a final message")
        return response

    async def stream_chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ResponseFragment]:
        client = self._get_client()
        content_parts: list[str] = []
        final_tool_calls: list[dict[str, Any]] = []
        options = {"temperature": temperature} if temperature is not None else None

        stream = await client.chat(
            model=model or self.default_model,
            messages=[_message_to_chat(m) for m in messages],
            tools=tools or None,
            stream=True,
            options=options,
        )
        async for chunk in stream:
            msg = getattr(chunk, "message", None)
            if msg is None:
                continue
            delta = getattr(msg, "content", None) or ""
            if delta:
                content_parts.append(delta)
                yield ResponseFragment(delta=delta, phase=Phase.ASSISTANT_TEXT)
            for tc in getattr(msg, "tool_calls", None) or []:
                fn = getattr(tc, "function", None)
                if fn is None:
                    continue
                name = getattr(fn, "name", "") or ""
                args = getattr(fn, "arguments", None)
                if isinstance(args, str):
                    try:
                        args = json.loads(args)
                    except ValueError as exc:
                        raise ModelResponseMalformed(f"Arguments for {name} are not valid JSON") from exc
                params = dict(args) if args else {}
                final_tool_calls.append({"id": new_call_id(), "name": name, "params": params})
                yield ResponseFragment(
                    delta=json.dumps({"name": name, "args": params}, default=str),
                    phase=Phase.TOOL_INTERNAL,
                )
        yield ResponseFragment(done=True, response=make_response("".join(content_parts), final_tool_calls))

    async def aclose(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
        if callable(aclose):
            await aclose()
