"""Unit tests for session stores and eviction policies."""
from __future__ import annotations

import asyncio
import json
import tempfile
import unittest
from pathlib import Path

from src.copilot_orchestrator.errors import InvalidInput, SessionConcurrencyConflict
from src.copilot_orchestrator.eviction import (
    CombinedEviction,
    LRUEviction,
    NoEviction,
    TTLEviction,
    policy_from_settings,
)
from src.copilot_orchestrator.models import AssistantMessage, ToolInvocation, ToolResult, UserMessage
from src.copilot_orchestrator.session_store import InMemorySessionStore, JsonFileSessionStore


def _exchange(text: str, reply: str) -> list:
    return [UserMessage(text=text), AssistantMessage(text=reply)]


def _tool_exchange(call_id: str) -> list:
    return [
        UserMessage(text="I'm hungry"),
        ToolInvocation(call_id=call_id, tool_name="get_nearby_restaurants"),
        ToolResult(call_id=call_id, tool_name="get_nearby_restaurants", content="Nearby restaurants: ..."),
        AssistantMessage(text="Pizza, burgers or salad?"),
    ]


class StoreContract:
    """Behaviour every backend must share; mixed into a concrete TestCase."""

    def make_store(self, **kwargs):
        raise NotImplementedError

    async def test_unseen_session_is_empty(self) -> None:
        store = self.make_store()
        self.assertEqual(await store.load("nobody"), [])

    async def test_append_then_load_in_order(self) -> None:
        store = self.make_store()
        await store.append("s1", _exchange("hi", "hello"))
        await store.append("s1", _tool_exchange("c1"))
        turns = await store.load("s1")
        self.assertEqual([t.kind for t in turns], ["user", "assistant", "user", "tool_invocation", "tool_result", "assistant"])
        self.assertEqual(turns[0].text, "hi")

    async def test_load_is_idempotent_and_a_copy(self) -> None:
        store = self.make_store()
        await store.append("s1", _exchange("hi", "hello"))
        first = await store.load("s1")
        second = await store.load("s1")
        self.assertEqual(first, second)
        first.append(UserMessage(text="not stored"))
        self.assertEqual(len(await store.load("s1")), 2)

    async def test_sessions_are_isolated(self) -> None:
        store = self.make_store()
        await store.append("a", _exchange("for a", "ok"))
        await store.append("b", _exchange("for b", "ok"))
        self.assertEqual((await store.load("a"))[0].text, "for a")
        self.assertEqual((await store.load("b"))[0].text, "for b")

    async def test_unresolved_tool_call_refused(self) -> None:
        store = self.make_store()
        dangling = [UserMessage(text="hi"), ToolInvocation(call_id="c1", tool_name="get_menu")]
        with self.assertRaises(ValueError):
            await store.append("s1", dangling)
        self.assertEqual(await store.load("s1"), [])

    async def test_expected_length_conflict(self) -> None:
        store = self.make_store()
        await store.append("s1", _exchange("hi", "hello"))
        with self.assertRaises(SessionConcurrencyConflict):
            await store.append("s1", _exchange("again", "hello"), expected_length=0)
        await store.append("s1", _exchange("again", "hello"), expected_length=2)
        self.assertEqual(len(await store.load("s1")), 4)

    async def test_empty_session_id_rejected(self) -> None:
        store = self.make_store()
        with self.assertRaises(InvalidInput):
            await store.load("")
        with self.assertRaises(InvalidInput):
            await store.append("", _exchange("a", "b"))

    async def test_same_session_is_serialized(self) -> None:
        store = self.make_store()
        order: list[str] = []

        async def writer(name: str) -> None:
            async with store.session("s1") as history:
                order.append(f"{name}:start")
                await asyncio.sleep(0.01)
                await store.append("s1", _exchange(name, "ok"), expected_length=len(history))
                order.append(f"{name}:end")

        await asyncio.gather(writer("one"), writer("two"))
        self.assertEqual(order, ["one:start", "one:end", "two:start", "two:end"])
        self.assertEqual(len(await store.load("s1")), 4)
        self.assertFalse(store.is_busy("s1"))

    async def test_different_sessions_do_not_block(self) -> None:
        store = self.make_store()
        release = asyncio.Event()

        async def slow() -> None:
            async with store.session("slow"):
                await release.wait()

        task = asyncio.create_task(slow())
        await asyncio.sleep(0)
        async with store.session("fast") as history:
            self.assertEqual(history, [])
            self.assertTrue(store.is_busy("slow"))
        release.set()
        await task

    async def test_lru_eviction_keeps_recent_sessions(self) -> None:
        store = self.make_store(eviction=LRUEviction(2))
        for sid in ("s1", "s2", "s3"):
            await store.append(sid, _exchange(sid, "ok"))
            await asyncio.sleep(0.001)
        self.assertEqual(await store.load("s1"), [])
        self.assertEqual(len(await store.load("s3")), 2)

    async def test_busy_session_not_evicted(self) -> None:
        store = self.make_store(eviction=LRUEviction(1))
        await store.append("old", _exchange("old", "ok"))
        async with store.session("old"):
            await store.append("new", _exchange("new", "ok"))
            self.assertEqual(len(await store.load("old")), 2)
            self.assertEqual(len(await store.load("new")), 2)

    async def test_eviction_never_races_a_new_turn(self) -> None:
        store = self.make_store(eviction=LRUEviction(1))
        deleting = asyncio.Event()
        release = asyncio.Event()
        delete = store._delete

        async def gated_delete(session_id: str) -> None:
            deleting.set()
            await release.wait()
            await delete(session_id)

        store._delete = gated_delete

        async def turn(session_id: str, text: str) -> None:
            async with store.session(session_id) as history:
                await store.append(session_id, _exchange(text, "ok"), expected_length=len(history))

        await turn("a", "first")
        evicting = asyncio.create_task(turn("b", "first"))
        await deleting.wait()
        # "a" is being evicted; a new message on it must wait, not load stale history.
        again = asyncio.create_task(turn("a", "again"))
        await asyncio.sleep(0.01)
        self.assertFalse(again.done())
        release.set()
        await evicting
        await again

        turns = await store.load("a")
        self.assertEqual([t.text for t in turns], ["again", "ok"])


class TestInMemorySessionStore(StoreContract, unittest.IsolatedAsyncioTestCase):
    def make_store(self, **kwargs):
        return InMemorySessionStore(**kwargs)

    async def test_len_counts_sessions(self) -> None:
        store = self.make_store()
        await store.append("a", _exchange("x", "y"))
        self.assertEqual(len(store), 1)


class TestJsonFileSessionStore(StoreContract, unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def make_store(self, **kwargs):
        return JsonFileSessionStore(self.directory, **kwargs)

    async def test_survives_a_new_store_instance(self) -> None:
        await self.make_store().append("../etc/passwd", _tool_exchange("c9"))
        turns = await self.make_store().load("../etc/passwd")
        self.assertIsInstance(turns[1], ToolInvocation)
        self.assertEqual(turns[2].call_id, "c9")

    async def test_file_name_is_hashed_and_has_metadata(self) -> None:
        await self.make_store().append("s1", _exchange("hi", "hello"))
        files = list(self.directory.glob("*.json"))
        self.assertEqual(len(files), 1)
        self.assertEqual(len(files[0].stem), 64)
        raw = json.loads(files[0].read_text(encoding="utf-8"))
        self.assertEqual(raw["session_id"], "s1")
        self.assertEqual(raw["metadata"]["turn_count"], 2)
        self.assertIn("created_at", raw["metadata"])

    async def test_append_reads_the_file_once_and_keeps_created_at(self) -> None:
        store = self.make_store()
        await store.append("s1", _exchange("hi", "hello"))
        created = json.loads(next(self.directory.glob("*.json")).read_text(encoding="utf-8"))["metadata"]["created_at"]

        reads = []
        read_sync = store._read_sync

        def counting_read(session_id: str):
            reads.append(session_id)
            return read_sync(session_id)

        store._read_sync = counting_read
        await store.append("s1", _exchange("again", "ok"), expected_length=2)

        self.assertEqual(reads, ["s1"])
        metadata = json.loads(next(self.directory.glob("*.json")).read_text(encoding="utf-8"))["metadata"]
        self.assertEqual(metadata["created_at"], created)
        self.assertEqual(metadata["turn_count"], 4)


class TestEvictionPolicies(unittest.TestCase):
    def test_no_eviction(self) -> None:
        self.assertEqual(NoEviction().select({"a": 0.0}, 1e9), [])

    def test_lru_drops_oldest(self) -> None:
        self.assertEqual(LRUEviction(2).select({"a": 3.0, "b": 1.0, "c": 2.0}, 10.0), ["b"])

    def test_ttl_drops_idle(self) -> None:
        self.assertEqual(TTLEviction(5).select({"a": 1.0, "b": 8.0}, 10.0), ["a"])

    def test_combined_is_a_union(self) -> None:
        policy = CombinedEviction(TTLEviction(5), LRUEviction(1))
        self.assertEqual(sorted(policy.select({"a": 1.0, "b": 8.0, "c": 9.0}, 10.0)), ["a", "b"])

    def test_policy_from_settings(self) -> None:
        self.assertIsInstance(policy_from_settings(None, None), NoEviction)
        self.assertIsInstance(policy_from_settings(10, None), LRUEviction)
        self.assertIsInstance(policy_from_settings(10, 60.0), CombinedEviction)

    def test_invalid_bounds(self) -> None:
        with self.assertRaises(ValueError):
            LRUEviction(0)
        with self.assertRaises(ValueError):
            TTLEviction(0)


if __name__ == "__main__":
    unittest.main()
