"""Google Gemini LLM provider implementation for the orchestrator."""

from __future__ import annotations

import json
import os
from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types as genai_types

from ..models import ModelResponse, Phase, ResponseFragment
from .base import LLMProvider, Message, make_response, new_call_id


class GeminiProvider(LLMProvider):
    """Gemini provider using the google-genai SDK."""

    def __init__(
        self,
        default_model: str = "gemini-2.0-flash",
        api_key: str | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key = (
            api_key
            or os.getenv("GOOGLE_API_KEY")
            or os.getenv("GEMINI_API_KEY")
            or os.getenv("GOOGLE_GENAI_API_KEY", "")
        )
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self._client:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options={"api_version": "v1beta"},
            )
        return self._client

    @staticmethod
    def _to_gemini_contents(messages: list[Message]) -> tuple[list[genai_types.Content], str | None]:
        """Convert chat messages into Gemini contents and a system instruction."""
        contents: list[genai_types.Content] = []
        system_instruction: str | None = None

        for m in messages:
            if m.role == "system":
                system_instruction = (m.content or "").strip() or system_instruction
                continue
            if m.role == "tool":
                response = (
                    {"error": m.content[len("Error: "):]}
                    if m.content.startswith("Error: ")
                    else {"result": m.content}
                )
                part = genai_types.Part(
                    function_response=genai_types.FunctionResponse(
                        id=m.tool_call_id, name=m.name or "", response=response
                    )
                )
                # Responses to one batch of calls go back in a single content
                last = contents[-1] if contents else None
                if last is not None and last.parts and last.parts[0].function_response is not None:
                    last.parts.append(part)
                else:
                    contents.append(genai_types.Content(role="user", parts=[part]))
                continue
            role = "model" if m.role == "assistant" else "user"
            parts: list[genai_types.Part] = []
            if m.content:
                parts.append(genai_types.Part(text=m.content))
            for tc in m.tool_calls or []:
                parts.append(
                    genai_types.Part(
                        function_call=genai_types.FunctionCall(
                            id=tc.get("id"), name=tc.get("name", ""), args=tc.get("params") or {}
                        )
                    )
                )
            if parts:
                contents.append(genai_types.Content(role=role, parts=parts))

        return contents, system_instruction

    @staticmethod
    def _to_gemini_tools(tools: list[dict[str, Any]] | None) -> list[genai_types.Tool] | None:
        """Convert function tools into Gemini Tool declarations."""
        if not tools:
            return None
        function_declarations: list[genai_types.FunctionDeclaration] = []
        for t in tools:
            fn = t.get("function") if "function" in t else t
            name = fn.get("name")
            if not name:
                continue
            params = dict(fn.get("parameters") or {})
            if not params.get("properties"):
                # Gemini rejects object schemas without properties
                params = None
            function_declarations.append(
                genai_types.FunctionDeclaration(
                    name=name,
                    description=fn.get("description", ""),
                    parameters=params,
                )
            )
        if not function_declarations:
            return None
        return [genai_types.Tool(function_declarations=function_declarations)]

    def _config(
        self,
        tools: list[dict[str, Any]] | None,
        system_instruction: str | None,
        temperature: float | None,
    ) -> genai_types.GenerateContentConfig:
        config_args: dict[str, Any] = {}
        gemini_tools = self._to_gemini_tools(tools)
        if gemini_tools:
            config_args["tools"] = gemini_tools
            config_args["tool_config"] = genai_types.ToolConfig(
                function_calling_config=genai_types.FunctionCallingConfig(
                    mode=genai_types.FunctionCallingConfigMode.AUTO
                )
            )
            config_args["automatic_function_calling"] = genai_types.AutomaticFunctionCallingConfig(disable=True)
        if system_instruction:
            config_args["system_instruction"] = system_instruction
        if temperature is not None:
            config_args["temperature"] = temperature
        return genai_types.GenerateContentConfig(**config_args)

    @staticmethod
    def _function_call_dict(fc: Any) -> dict[str, Any]:
        return {
            "id": getattr(fc, "id", None) or new_call_id(),
            "name": fc.name,
            "params": dict(fc.args) if fc.args else {},
        }

    async def chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> ModelResponse:
        """Non-streaming chat using Gemini generate_content."""
        client = self._get_client()
        contents, system_instruction = self._to_gemini_contents(messages)
        resp = await client.aio.models.generate_content(
            model=model or self.default_model,
            contents=contents,
            config=self._config(tools, system_instruction, temperature),
        )
        text_parts: list[str] = []
        tool_calls: list[dict[str, Any]] = []
        for cand in (getattr(resp, "candidates", None) or [])[:1]:
            content = getattr(cand, "content", None)
            for part in getattr(content, "parts", None) or []:
                if getattr(part, "thought", None):
                    continue
                if part.text:
                    text_parts.append(part.text)
                if part.function_call:
                    tool_calls.append(self._function_call_dict(part.function_call))
        return make_response("".join(text_parts), tool_calls)

    async def stream_chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ResponseFragment]:
        """Streaming chat for Gemini; yields tagged fragments and a final done fragment."""
        client = self._get_client()
        contents, system_instruction = self._to_gemini_contents(messages)
        stream = await client.aio.models.generate_content_stream(
            model=model or self.default_model,
            contents=contents,
            config=self._config(tools, system_instruction, temperature),
        )

        content_parts: list[str] = []
        tool_calls: list[dict[str, Any]] = []
        async for chunk in stream:
            for cand in (getattr(chunk, "candidates", None) or [])[:1]:
                content = getattr(cand, "content", None)
                for part in getattr(content, "parts", None) or []:
                    if getattr(part, "thought", None):
                        continue
                    if part.text:
                        content_parts.append(part.text)
                        yield ResponseFragment(delta=part.text, phase=Phase.ASSISTANT_TEXT)
                    if part.function_call:
                        call = self._function_call_dict(part.function_call)
                        tool_calls.append(call)
                        yield ResponseFragment(
                            delta=json.dumps({"name": call["name"], "args": call["params"]}, default=str),
                            phase=Phase.TOOL_INTERNAL,
                        )

        yield ResponseFragment(done=True, response=make_response("".join(content_parts), tool_calls))
