"""Tests for reactive atoms, write batching and persistent atoms."""

from __future__ import annotations

import asyncio
import unittest

from component_runtime.persistence import InMemoryKeyValueStore, KvEntry, SetEntryRequest
from component_runtime.store import (
    Atom,
    PersistentAtom,
    after_commit,
    batch,
    detached_context,
    in_batch,
)
from component_runtime.task_manager import TaskManager


class AtomTests(unittest.TestCase):
    """Atoms hold one authoritative value and notify synchronously."""

    def test_get_returns_default_then_latest_value(self) -> None:
        atom = Atom("tab", "home")
        self.assertEqual(atom.get(), "home")
        atom.set("settings")
        self.assertEqual(atom.get(), "settings")
        self.assertEqual(atom.version, 1)

    def test_set_is_total_replacement(self) -> None:
        atom = Atom("workflow", {"id": 1, "name": "a"})
        atom.set({"id": 2})
        self.assertEqual(atom.get(), {"id": 2})

    def test_listen_notifies_before_set_returns(self) -> None:
        atom = Atom("flag", False)
        seen: list[bool] = []
        atom.listen(seen.append)
        atom.set(True)
        self.assertEqual(seen, [True])

    def test_subscribe_calls_immediately_with_current_value(self) -> None:
        atom = Atom("count", 3)
        seen: list[int] = []
        subscription = atom.subscribe(seen.append)
        atom.set(4)
        subscription.unsubscribe()
        atom.set(5)
        self.assertEqual(seen, [3, 4])

    def test_unsubscribe_inside_callback(self) -> None:
        atom = Atom("count", 0)
        seen: list[int] = []
        holder: dict[str, object] = {}

        def once(value: int) -> None:
            seen.append(value)
            holder["subscription"].unsubscribe()  # type: ignore[attr-defined]

        holder["subscription"] = atom.listen(once)
        atom.set(1)
        atom.set(2)
        self.assertEqual(seen, [1])
        self.assertEqual(atom.listener_count, 0)

    def test_dispose_drops_listeners_but_set_still_succeeds(self) -> None:
        atom = Atom("count", 0)
        seen: list[int] = []
        atom.listen(seen.append)
        atom.dispose()
        atom.set(9)
        self.assertTrue(atom.disposed)
        self.assertEqual(atom.get(), 9)
        self.assertEqual(seen, [])


class BatchTests(unittest.TestCase):
    """Batched writes are applied together or not at all."""

    def test_writes_are_buffered_until_exit(self) -> None:
        atom = Atom("x", 0)
        seen: list[int] = []
        atom.listen(seen.append)
        with batch():
            self.assertTrue(in_batch())
            atom.set(1)
            self.assertEqual(atom.get(), 1)
            self.assertEqual(seen, [])
            atom.set(2)
        self.assertFalse(in_batch())
        self.assertEqual(atom.get(), 2)
        self.assertEqual(seen, [2])
        self.assertEqual(atom.version, 1)

    def test_raising_block_discards_writes(self) -> None:
        atom = Atom("x", 0)
        seen: list[int] = []
        atom.listen(seen.append)
        with self.assertRaises(ValueError):
            with batch():
                atom.set(1)
                raise ValueError("handler failed")
        self.assertEqual(atom.get(), 0)
        self.assertEqual(seen, [])

    def test_nested_failure_rolls_back_only_inner_writes(self) -> None:
        outer = Atom("outer", 0)
        inner = Atom("inner", 0)
        with batch():
            outer.set(1)
            try:
                with batch():
                    inner.set(1)
                    outer.set(2)
                    raise RuntimeError("inner")
            except RuntimeError:
                pass
        self.assertEqual(outer.get(), 1)
        self.assertEqual(inner.get(), 0)

    def test_after_commit_runs_after_notifications_or_never(self) -> None:
        atom = Atom("x", 0)
        order: list[str] = []
        atom.listen(lambda _value: order.append("notify"))
        with batch():
            atom.set(1)
            after_commit(lambda: order.append("deferred"))
            self.assertEqual(order, [])
        self.assertEqual(order, ["notify", "deferred"])

        order.clear()
        with self.assertRaises(KeyError):
            with batch():
                after_commit(lambda: order.append("lost"))
                raise KeyError("x")
        self.assertEqual(order, [])

        after_commit(lambda: order.append("immediate"))
        self.assertEqual(order, ["immediate"])

    def test_detached_context_has_no_open_batch(self) -> None:
        with batch():
            context = detached_context()
            self.assertFalse(context.run(in_batch))


class _FailingStore:
    def set_entry(self, application_id: str, key: str, request: SetEntryRequest) -> KvEntry:
        raise OSError("disk full")

    def get_entry(self, application_id: str, key: str) -> KvEntry | None:
        raise OSError("disk gone")


class _AsyncStore:
    def __init__(self) -> None:
        self.written: list[object] = []

    async def set_entry(self, application_id: str, key: str, request: SetEntryRequest) -> None:
        await asyncio.sleep(0)
        self.written.append(request.value)

    def get_entry(self, application_id: str, key: str) -> KvEntry | None:
        return None


class PersistentAtomTests(unittest.TestCase):
    """Mirrored writes never roll back the in-memory value."""

    def test_set_mirrors_into_store(self) -> None:
        kv = InMemoryKeyValueStore()
        atom = PersistentAtom(
            "collapsed",
            False,
            kv_store=kv,
            key="_user_prefs/left_panel_collapsed",
            application_id="app-1",
            scope="user",
        )
        atom.set(True)
        entry = kv.get_entry("app-1", "_user_prefs/left_panel_collapsed")
        assert entry is not None
        self.assertTrue(entry.value)
        self.assertEqual(entry.scope, "user")
        self.assertFalse(entry.is_secret)

    def test_persistence_failure_keeps_in_memory_value(self) -> None:
        errors: list[tuple[str, str]] = []
        atom = PersistentAtom(
            "collapsed", False, kv_store=_FailingStore(), key="k", application_id="app"
        )
        atom.on_persist_error = lambda name, error: errors.append((name, error))
        seen: list[bool] = []
        atom.listen(seen.append)
        with self.assertLogs("component_runtime.store", level="WARNING") as captured:
            atom.set(True)
        self.assertTrue(atom.get())
        self.assertEqual(seen, [True])
        self.assertEqual(atom.last_persist_error, "disk full")
        self.assertEqual(errors, [("collapsed", "disk full")])
        self.assertIn("store.persist.failed", captured.output[0])

    def test_load_restores_without_writing_back(self) -> None:
        kv = InMemoryKeyValueStore()
        kv.set_entry("app", "k", SetEntryRequest(value=True))
        atom = PersistentAtom("collapsed", False, kv_store=kv, key="k", application_id="app")
        self.assertTrue(atom.load())
        self.assertTrue(atom.get())
        entry = kv.get_entry("app", "k")
        assert entry is not None
        self.assertEqual(entry.version, 1)

    def test_load_missing_entry_and_failing_store(self) -> None:
        atom = PersistentAtom(
            "collapsed", False, kv_store=InMemoryKeyValueStore(), key="k", application_id="a"
        )
        self.assertFalse(atom.load())
        failing = PersistentAtom(
            "collapsed", False, kv_store=_FailingStore(), key="k", application_id="a"
        )
        with self.assertLogs("component_runtime.store", level="WARNING"):
            self.assertFalse(failing.load())
        self.assertFalse(failing.get())

    def test_application_id_may_be_callable(self) -> None:
        kv = InMemoryKeyValueStore()
        current = {"id": "first"}
        atom = PersistentAtom(
            "pref", 0, kv_store=kv, key="k", application_id=lambda: current["id"]
        )
        current["id"] = "second"
        atom.set(1)
        self.assertIsNotNone(kv.get_entry("second", "k"))
        self.assertIsNone(kv.get_entry("first", "k"))


class AsyncPersistentAtomTests(unittest.IsolatedAsyncioTestCase):
    async def test_awaitable_mirror_is_scheduled(self) -> None:
        kv = _AsyncStore()
        tasks = TaskManager()
        atom = PersistentAtom("pref", 0, kv_store=kv, key="k", application_id="a", tasks=tasks)
        atom.set(7)
        self.assertEqual(atom.get(), 7)
        await tasks.await_all()
        self.assertEqual(kv.written, [7])
        self.assertIsNone(atom.last_persist_error)

    def test_awaitable_mirror_without_task_manager_is_reported(self) -> None:
        atom = PersistentAtom("pref", 0, kv_store=_AsyncStore(), key="k", application_id="a")
        with self.assertLogs("component_runtime.store", level="WARNING"):
            atom.set(1)
        self.assertEqual(atom.get(), 1)
        self.assertIsNotNone(atom.last_persist_error)


if __name__ == "__main__":
    unittest.main()
