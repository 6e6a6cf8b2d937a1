"""Tool descriptors, argument validation and the tool registry."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from .errors import (
    DuplicateToolName,
    ToolError,
    ToolExecutionError,
    ToolValidationError,
    UnknownTool,
)
from .models import ToolCallRequest, ToolResult

logger = logging.getLogger(__name__)

FieldType = Literal["string", "integer", "number", "boolean", "array", "object"]

_MISSING = object()


@dataclass(frozen=True)
class FieldSpec:
    """One declared input field of a tool."""

    type: FieldType
    description: str = ""
    required: bool = True
    default: Any = None
    enum: tuple[Any, ...] | None = None
    items: FieldType | None = None  # element type for arrays

    def to_json_schema(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type}
        if self.description:
            out["description"] = self.description
        if self.enum is not None:
            out["enum"] = list(self.enum)
        if self.type == "array":
            out["items"] = {"type": self.items or "string"}
        if not self.required and self.default is not None:
            out["default"] = self.default
        return out


def _check_type(name: str, value: Any, expected: FieldType) -> Any:
    """Return ``value`` (normalized) if it matches ``expected``, else raise."""
    if expected == "string" and isinstance(value, str):
        return value
    if expected == "boolean" and isinstance(value, bool):
        return value
    if expected == "integer" and not isinstance(value, bool):
        if isinstance(value, int):
            return value
        # Some models send every number as a float
        if isinstance(value, float) and value.is_integer():
            return int(value)
    if expected == "number" and not isinstance(value, bool) and isinstance(value, (int, float)):
        return value
    if expected == "array" and isinstance(value, list):
        return value
    if expected == "object" and isinstance(value, dict):
        return value
    raise ToolValidationError(
        f"Argument '{name}' must be of type {expected}, got {type(value).__name__}"
    )


@dataclass(frozen=True)
class ToolDescriptor:
    """A callable capability exposed to the model."""

    name: str
    description: str
    handler: Callable[..., Any]
    input_schema: dict[str, FieldSpec] = field(default_factory=dict)

    def to_tool_schema(self) -> dict[str, Any]:
        """Standard function-calling schema (OpenAI-style) for any LLM provider."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {k: spec.to_json_schema() for k, spec in self.input_schema.items()},
                    "required": [k for k, spec in self.input_schema.items() if spec.required],
                },
            },
        }

    def validate(self, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Check arguments against the schema and fill in defaults."""
        arguments = dict(arguments or {})
        unexpected = sorted(set(arguments) - set(self.input_schema))
        if unexpected:
            raise ToolValidationError(f"Unexpected argument(s) for {self.name}: {', '.join(unexpected)}")
        validated: dict[str, Any] = {}
        for key, spec in self.input_schema.items():
            value = arguments.get(key, _MISSING)
            if value is _MISSING or value is None:
                if spec.required:
                    raise ToolValidationError(f"Missing required argument '{key}' for {self.name}")
                validated[key] = spec.default
                continue
            value = _check_type(key, value, spec.type)
            if spec.type == "array" and spec.items:
                value = [_check_type(f"{key}[{i}]", v, spec.items) for i, v in enumerate(value)]
            if spec.enum is not None and value not in spec.enum:
                allowed = ", ".join(str(v) for v in spec.enum)
                raise ToolValidationError(f"Argument '{key}' must be one of: {allowed}")
            validated[key] = value
        return validated


def _to_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


class ToolRegistry:
    """Static mapping from tool name to descriptor."""

    def __init__(self, descriptors: Iterable[ToolDescriptor] = ()) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._closers: list[Callable[[], Awaitable[None]]] = []
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise DuplicateToolName(f"Tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = descriptor

    def resolve(self, name: str) -> ToolDescriptor:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownTool(f"Unknown tool: {name}") from None

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self, names: Iterable[str] | None = None) -> list[ToolDescriptor]:
        """All descriptors, or the named subset in the given order."""
        if names is None:
            return list(self._tools.values())
        return [self.resolve(n) for n in names]

    def subset(self, names: Iterable[str]) -> ToolRegistry:
        """A registry restricted to ``names`` (used by agent configurations)."""
        return ToolRegistry(self.descriptors(names))

    def add_closer(self, closer: Callable[[], Awaitable[None]]) -> None:
        """Register a coroutine function that releases a handler resource."""
        self._closers.append(closer)

    async def aclose(self) -> None:
        for closer in self._closers:
            await closer()
        self._closers.clear()

    async def execute(self, call: ToolCallRequest, timeout: float | None = None) -> ToolResult:
        """Run one tool call. Always returns a ToolResult; failures become error payloads."""
        try:
            descriptor = self.resolve(call.name)
            arguments = descriptor.validate(call.arguments)
            if inspect.iscoroutinefunction(descriptor.handler):
                pending = descriptor.handler(**arguments)
            else:
                pending = asyncio.to_thread(descriptor.handler, **arguments)
            result = await asyncio.wait_for(pending, timeout) if timeout else await pending
            return ToolResult(call_id=call.call_id, tool_name=call.name, content=_to_text(result))
        except ToolError as e:
            logger.warning("Tool %s failed (%s): %s", call.name, e.code, e.message)
            return ToolResult(call_id=call.call_id, tool_name=call.name, error=e.message)
        except asyncio.TimeoutError:
            logger.warning("Tool %s timed out after %ss", call.name, timeout)
            return ToolResult(call_id=call.call_id, tool_name=call.name, error=f"{call.name} timed out")
        except Exception as e:
            logger.exception("Tool %s raised", call.name)
            error = ToolExecutionError(str(e) or type(e).__name__)
            return ToolResult(call_id=call.call_id, tool_name=call.name, error=error.message)
