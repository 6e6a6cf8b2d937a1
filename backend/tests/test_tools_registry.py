"""Unit tests for the tool registry: registration, validation, execution."""
from __future__ import annotations

import asyncio
import json
import unittest

from src.copilot_orchestrator.errors import DuplicateToolName, ToolExecutionError, ToolValidationError, UnknownTool
from src.copilot_orchestrator.models import ToolCallRequest
from src.copilot_orchestrator.tools import FieldSpec, ToolDescriptor, ToolRegistry


def _echo(text: str, times: int = 1) -> str:
    return text * times


async def _slow() -> str:
    await asyncio.sleep(5)
    return "late"


def _broken() -> str:
    raise RuntimeError("disk on fire")


def _refuses() -> str:
    raise ToolExecutionError("Restaurant is closed")


ECHO = ToolDescriptor(
    name="echo",
    description="Repeat text",
    handler=_echo,
    input_schema={
        "text": FieldSpec("string", "What to repeat"),
        "times": FieldSpec("integer", "How often", required=False, default=1),
    },
)


class TestRegistration(unittest.TestCase):
    def test_duplicate_name_rejected(self) -> None:
        registry = ToolRegistry([ECHO])
        with self.assertRaises(DuplicateToolName):
            registry.register(ECHO)

    def test_resolve_unknown_raises(self) -> None:
        with self.assertRaises(UnknownTool):
            ToolRegistry().resolve("nope")

    def test_subset_keeps_requested_order(self) -> None:
        other = ToolDescriptor(name="other", description="", handler=lambda: "x")
        registry = ToolRegistry([ECHO, other])
        sub = registry.subset(["other", "echo"])
        self.assertEqual(sub.names(), ["other", "echo"])
        with self.assertRaises(UnknownTool):
            registry.subset(["missing"])

    def test_tool_schema_lists_required_fields(self) -> None:
        schema = ECHO.to_tool_schema()
        params = schema["function"]["parameters"]
        self.assertEqual(schema["function"]["name"], "echo")
        self.assertEqual(params["required"], ["text"])
        self.assertEqual(params["properties"]["times"], {"type": "integer", "description": "How often", "default": 1})


class TestValidation(unittest.TestCase):
    def test_defaults_filled(self) -> None:
        self.assertEqual(ECHO.validate({"text": "hi"}), {"text": "hi", "times": 1})

    def test_missing_required(self) -> None:
        with self.assertRaises(ToolValidationError):
            ECHO.validate({})

    def test_wrong_type(self) -> None:
        with self.assertRaises(ToolValidationError):
            ECHO.validate({"text": 3})

    def test_bool_is_not_an_integer(self) -> None:
        with self.assertRaises(ToolValidationError):
            ECHO.validate({"text": "a", "times": True})

    def test_integral_float_accepted_as_integer(self) -> None:
        self.assertEqual(ECHO.validate({"text": "a", "times": 2.0})["times"], 2)

    def test_unexpected_argument_rejected(self) -> None:
        with self.assertRaises(ToolValidationError):
            ECHO.validate({"text": "a", "colour": "red"})

    def test_enum_and_array_items(self) -> None:
        tool = ToolDescriptor(
            name="order",
            description="",
            handler=lambda kind, ids: None,
            input_schema={
                "kind": FieldSpec("string", enum=("pizza", "burger")),
                "ids": FieldSpec("array", items="string"),
            },
        )
        self.assertEqual(tool.validate({"kind": "pizza", "ids": ["p1"]}), {"kind": "pizza", "ids": ["p1"]})
        with self.assertRaises(ToolValidationError):
            tool.validate({"kind": "sushi", "ids": []})
        with self.assertRaises(ToolValidationError):
            tool.validate({"kind": "pizza", "ids": [1]})


class TestExecute(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.registry = ToolRegistry([
            ECHO,
            ToolDescriptor(name="slow", description="", handler=_slow),
            ToolDescriptor(name="broken", description="", handler=_broken),
            ToolDescriptor(name="refuses", description="", handler=_refuses),
            ToolDescriptor(name="data", description="", handler=lambda: {"a": 1}),
        ])

    async def test_sync_handler_result(self) -> None:
        result = await self.registry.execute(ToolCallRequest("c1", "echo", {"text": "ab", "times": 2}))
        self.assertTrue(result.ok)
        self.assertEqual(result.call_id, "c1")
        self.assertEqual(result.content, "abab")

    async def test_non_text_result_is_json(self) -> None:
        result = await self.registry.execute(ToolCallRequest("c1", "data"))
        self.assertEqual(json.loads(result.content), {"a": 1})

    async def test_unknown_tool_becomes_error_result(self) -> None:
        result = await self.registry.execute(ToolCallRequest("c2", "teleport"))
        self.assertFalse(result.ok)
        self.assertIn("Unknown tool", result.error)
        self.assertEqual(result.model_text(), f"Error: {result.error}")

    async def test_validation_error_becomes_error_result(self) -> None:
        result = await self.registry.execute(ToolCallRequest("c3", "echo", {}))
        self.assertFalse(result.ok)
        self.assertIn("text", result.error)

    async def test_handler_errors_become_error_results(self) -> None:
        refused = await self.registry.execute(ToolCallRequest("c4", "refuses"))
        self.assertEqual(refused.error, "Restaurant is closed")
        with self.assertLogs("src.copilot_orchestrator.tools", level="ERROR"):
            broken = await self.registry.execute(ToolCallRequest("c5", "broken"))
        self.assertEqual(broken.error, "disk on fire")

    async def test_timeout_becomes_error_result(self) -> None:
        result = await self.registry.execute(ToolCallRequest("c6", "slow"), timeout=0.05)
        self.assertFalse(result.ok)
        self.assertIn("timed out", result.error)

    async def test_aclose_runs_closers_once(self) -> None:
        closed = []

        async def closer() -> None:
            closed.append(True)

        self.registry.add_closer(closer)
        await self.registry.aclose()
        await self.registry.aclose()
        self.assertEqual(closed, [True])


if __name__ == "__main__":
    unittest.main()
