"""Model invocation adapter: one model call with timeouts and error mapping."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from .config import DEFAULT_MODEL, DEFAULT_MODEL_TIMEOUT, DEFAULT_STREAM_IDLE_TIMEOUT
from .errors import ModelError, ModelResponseMalformed, ModelUnavailable
from .models import ModelResponse, ResponseFragment, Turn
from .providers import (
    GeminiProvider,
    LLMProvider,
    OllamaProvider,
    OpenAIProvider,
    build_chat_messages,
)
from .tools import ToolDescriptor

logger = logging.getLogger(__name__)

_provider_cache: dict[str, LLMProvider] = {}


def resolve_provider(model: str | None) -> tuple[LLMProvider, str]:
    """
    Resolve provider and underlying model name from a model string.

    Expected formats:
    - "provider:model_name" (e.g. "gemini:gemini-2.0-flash", "openai:gpt-4.1-nano")
    - "model_name" (no colon) → treated as an Ollama model.
    """
    effective = (model or DEFAULT_MODEL).strip()
    if ":" in effective:
        provider_name, raw_model = effective.split(":", 1)
        provider_name = provider_name.strip().lower()
        model_name = raw_model.strip()
    else:
        provider_name = "ollama"
        model_name = effective

    if provider_name not in _provider_cache:
        if provider_name == "openai":
            _provider_cache[provider_name] = OpenAIProvider()
        elif provider_name in ("gemini", "google"):
            _provider_cache[provider_name] = GeminiProvider()
        else:
            # Unknown / fallback → Ollama
            _provider_cache[provider_name] = OllamaProvider(default_model=model_name)

    return _provider_cache[provider_name], model_name


class ModelAdapter:
    """
    Single-call abstraction over a provider.

    ``invoke`` returns a tagged ModelResponse. ``invoke_streaming`` yields
    fragments in generation order and always ends with a terminal fragment or
    raises. Timeouts and provider errors surface as ModelUnavailable; responses
    that cannot be turned into turns surface as ModelResponseMalformed.
    """

    def __init__(
        self,
        provider: LLMProvider,
        model: str | None = None,
        *,
        timeout: float = DEFAULT_MODEL_TIMEOUT,
        idle_timeout: float = DEFAULT_STREAM_IDLE_TIMEOUT,
        temperature: float | None = None,
    ) -> None:
        self.provider = provider
        self.model = model
        self.timeout = timeout
        self.idle_timeout = idle_timeout
        self.temperature = temperature

    @classmethod
    def from_model_string(cls, model: str | None, **kwargs: Any) -> ModelAdapter:
        provider, model_name = resolve_provider(model)
        return cls(provider, model_name, **kwargs)

    def _request(
        self, history: list[Turn], system_prompt: str, tools: list[ToolDescriptor]
    ) -> tuple[list[Any], dict[str, Any]]:
        messages = build_chat_messages(system_prompt, history)
        kwargs: dict[str, Any] = {
            "model": self.model,
            "tools": [t.to_tool_schema() for t in tools] or None,
        }
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        return messages, kwargs

    async def invoke(
        self, history: list[Turn], system_prompt: str, tools: list[ToolDescriptor]
    ) -> ModelResponse:
        messages, kwargs = self._request(history, system_prompt, tools)
        try:
            return await asyncio.wait_for(self.provider.chat(messages, **kwargs), self.timeout)
        except asyncio.TimeoutError:
            raise ModelUnavailable(f"Model call timed out after {self.timeout}s") from None
        except ModelError:
            raise
        except Exception as exc:
            logger.warning("Model call failed: %s", exc)
            raise ModelUnavailable(f"Model call failed: {exc}") from exc

    async def invoke_streaming(
        self, history: list[Turn], system_prompt: str, tools: list[ToolDescriptor]
    ) -> AsyncIterator[ResponseFragment]:
        messages, kwargs = self._request(history, system_prompt, tools)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        stream = self.provider.stream_chat(messages, **kwargs)
        try:
            while True:
                wait = min(self.idle_timeout, deadline - loop.time())
                try:
                    if wait <= 0:
                        raise asyncio.TimeoutError
                    fragment = await asyncio.wait_for(anext(stream), wait)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    raise ModelUnavailable("Model stream stalled or exceeded its time limit") from None
                except ModelError:
                    raise
                except Exception as exc:
                    logger.warning("Model stream failed: %s", exc)
                    raise ModelUnavailable(f"Model stream failed: {exc}") from exc
                if fragment.done:
                    if fragment.response is None:
                        raise ModelResponseMalformed("Terminal fragment carries no response")
                    yield fragment
                    return
                yield fragment
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception:
                    logger.debug("Error closing model stream", exc_info=True)
        raise ModelResponseMalformed("Model stream ended without a terminal fragment")

    async def aclose(self) -> None:
        await self.provider.aclose()
