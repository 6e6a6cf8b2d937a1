"""Copilot orchestrator: LLM and tool loop with per-session history and streaming."""

from .agents import AGENTS, RESTAURANT_SERVICE_AGENT, ROAD_COMPANION_AGENT, AgentConfig, get_agent
from .errors import (
    InvalidInput,
    ModelResponseMalformed,
    ModelUnavailable,
    OrchestratorError,
    ToolCycleLimitExceeded,
)
from .llm import ModelAdapter, resolve_provider
from .loop import LoopOptions, LoopState, Orchestrator, TurnOutcome
from .models import (
    AssistantMessage,
    FailureNotice,
    FinalText,
    Phase,
    ResponseFragment,
    ToolCallBatch,
    ToolCallRequest,
    ToolInvocation,
    ToolResult,
    Turn,
    UserMessage,
)
from .providers import GeminiProvider, LLMProvider, OllamaProvider, OpenAIProvider
from .session_store import InMemorySessionStore, JsonFileSessionStore, SessionStore
from .streaming import StreamComplete, StreamError, TextIncrement, encode_sse
from .tools import FieldSpec, ToolDescriptor, ToolRegistry

__all__ = [
    "AGENTS",
    "RESTAURANT_SERVICE_AGENT",
    "ROAD_COMPANION_AGENT",
    "AgentConfig",
    "get_agent",
    "InvalidInput",
    "ModelResponseMalformed",
    "ModelUnavailable",
    "OrchestratorError",
    "ToolCycleLimitExceeded",
    "ModelAdapter",
    "resolve_provider",
    "LoopOptions",
    "LoopState",
    "Orchestrator",
    "TurnOutcome",
    "AssistantMessage",
    "FailureNotice",
    "FinalText",
    "Phase",
    "ResponseFragment",
    "ToolCallBatch",
    "ToolCallRequest",
    "ToolInvocation",
    "ToolResult",
    "Turn",
    "UserMessage",
    "GeminiProvider",
    "LLMProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "SessionStore",
    "StreamComplete",
    "StreamError",
    "TextIncrement",
    "encode_sse",
    "FieldSpec",
    "ToolDescriptor",
    "ToolRegistry",
]
