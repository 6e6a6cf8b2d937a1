"""LLM providers: pluggable backends for the orchestrator."""

from .base import LLMProvider, Message, build_chat_messages
from .gemini_provider import GeminiProvider
from .ollama import OllamaProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "LLMProvider",
    "Message",
    "build_chat_messages",
    "GeminiProvider",
    "OllamaProvider",
    "OpenAIProvider",
]
