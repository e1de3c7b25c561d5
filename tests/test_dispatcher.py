"""Tests for the component event dispatcher."""

from __future__ import annotations

import asyncio
import unittest

from component_runtime.context import EventInvocation
from component_runtime.diagnostics import DiagnosticKind, DiagnosticSink
from component_runtime.dispatcher import ComponentEventDispatcher, DispatchOutcome
from component_runtime.state import RuntimeStore


def _store(**kwargs: object) -> RuntimeStore:
    return RuntimeStore(application_id="app", **kwargs)  # type: ignore[arg-type]


class DesignModeTests(unittest.TestCase):
    """Outside view mode handlers never run."""

    def setUp(self) -> None:
        self.store = _store()
        self.dispatcher = ComponentEventDispatcher(self.store)
        self.selected: list[object] = []
        self.component = {
            "uuid": "c1",
            "event": {"onClick": "set_atom('clicked', True)", "onChange": "set_atom('changed', True)"},
        }

    def test_on_click_calls_fallback_once_with_event(self) -> None:
        raw_event = {"type": "click"}
        outcome = self.dispatcher.dispatch(
            False, self.component, None, "onClick", raw_event, None, self.selected.append
        )
        self.assertEqual(outcome, DispatchOutcome.SELECTED)
        self.assertEqual(self.selected, [raw_event])
        self.assertFalse(self.store.has_atom("clicked"))

    def test_other_events_are_ignored(self) -> None:
        outcome = self.dispatcher.dispatch(
            False, self.component, None, "onChange", {"type": "change"}, {"value": 1}, self.selected.append
        )
        self.assertEqual(outcome, DispatchOutcome.IGNORED)
        self.assertEqual(self.selected, [])
        self.assertFalse(self.store.has_atom("changed"))

    def test_on_click_without_event_is_ignored(self) -> None:
        outcome = self.dispatcher.dispatch(
            False, self.component, None, "onClick", None, None, self.selected.append
        )
        self.assertEqual(outcome, DispatchOutcome.IGNORED)
        self.assertEqual(self.selected, [])

    def test_failing_fallback_is_contained(self) -> None:
        def broken(_event: object) -> None:
            raise RuntimeError("editor gone")

        with self.assertLogs("component_runtime.dispatcher", level="WARNING"):
            outcome = self.dispatcher.dispatch(
                False, self.component, None, "onClick", {"type": "click"}, None, broken
            )
        self.assertEqual(outcome, DispatchOutcome.FAILED)


class ViewModeTests(unittest.TestCase):
    """View-mode dispatch resolves and runs ``event.<name>``."""

    def setUp(self) -> None:
        self.store = _store()
        self.dispatcher = ComponentEventDispatcher(self.store)

    def _versions(self) -> dict[str, int]:
        return {name: self.store.atom(name).version for name in self.store.atom_names}

    def test_falsy_extra_value_reaches_store(self) -> None:
        component = {"uuid": "c1", "event": {"onChange": "set_atom('$x', context.value)"}}
        outcome = self.dispatcher.dispatch(
            True, component, None, "onChange", {"value": "raw"}, {"value": 0, "option": "a"}
        )
        self.assertEqual(outcome, DispatchOutcome.COMPLETED)
        self.assertEqual(self.store.atom("$x").get(), 0)
        self.assertEqual(len(self.store.diagnostics), 0)

    def test_missing_handler_has_no_effect_and_one_miss(self) -> None:
        selected: list[object] = []
        before = self._versions()
        outcome = self.dispatcher.dispatch(
            True, {"uuid": "c1", "event": {}}, None, "onClose", {"type": "close"}, None, selected.append
        )
        self.assertEqual(outcome, DispatchOutcome.MISSING)
        self.assertEqual(self._versions(), before)
        self.assertEqual(selected, [])
        misses = self.store.diagnostics.of_kind(DiagnosticKind.RESOLUTION_MISS)
        self.assertEqual(len(misses), 1)
        self.assertEqual(misses[0].event_name, "onClose")

    def test_missing_handler_is_silent_when_not_reported(self) -> None:
        store = _store(diagnostics=DiagnosticSink(report_missing_handlers=False))
        outcome = ComponentEventDispatcher(store).dispatch(True, {"uuid": "c1"}, None, "onClose")
        self.assertEqual(outcome, DispatchOutcome.MISSING)
        self.assertEqual(len(store.diagnostics), 0)

    def test_view_mode_click_does_not_call_fallback(self) -> None:
        selected: list[object] = []
        component = {"uuid": "c1", "event": {"onClick": "set_atom('clicked', True)"}}
        self.dispatcher.dispatch(True, component, None, "onClick", {"type": "click"}, None, selected.append)
        self.assertEqual(selected, [])
        self.assertTrue(self.store.atom("clicked").get())

    def test_subscriber_sees_write_before_dispatch_returns(self) -> None:
        seen: list[object] = []
        self.store.atom("count", 0).listen(seen.append)
        component = {"uuid": "c1", "event": {"onClick": "set_atom('count', get_atom('count') + 1)"}}
        self.dispatcher.dispatch(True, component, None, "onClick", {"type": "click"})
        self.assertEqual(seen, [1])

    def test_throwing_handler_gives_one_diagnostic_and_keeps_state(self) -> None:
        self.store.atom("count", 5)
        component = {
            "uuid": "c1",
            "event": {"onClick": "set_atom('count', 6)\nraise RuntimeError('boom')"},
        }
        with self.assertLogs("component_runtime.handlers.kernel", level="WARNING"):
            outcome = self.dispatcher.dispatch(True, component, None, "onClick", {"type": "click"})
        self.assertEqual(outcome, DispatchOutcome.FAILED)
        self.assertEqual(self.store.atom("count").get(), 5)
        self.assertEqual(len(self.store.diagnostics), 1)

    def test_nested_event_paths(self) -> None:
        component = {"uuid": "c1", "event": {"actions": {"save": "set_atom('saved', True)"}}}
        self.dispatcher.dispatch(True, component, None, "actions.save")
        self.assertTrue(self.store.atom("saved").get())

    def test_item_is_passed_to_handler(self) -> None:
        component = {"uuid": "row", "event": {"onClick": "set_atom('row', item['id'])"}}
        self.dispatcher.dispatch(True, component, {"id": 42}, "onClick", {"type": "click"})
        self.assertEqual(self.store.atom("row").get(), 42)


class DispatcherExtrasTests(unittest.TestCase):
    """onInit, sequences and handler introspection."""

    def setUp(self) -> None:
        self.store = _store()
        self.dispatcher = ComponentEventDispatcher(self.store)

    def test_dispatch_init_runs_on_init_with_empty_context(self) -> None:
        component = {"uuid": "c1", "event": {"onInit": "set_atom('init', (len(context), context.event))"}}
        self.assertEqual(self.dispatcher.dispatch_init(True, component), DispatchOutcome.COMPLETED)
        self.assertEqual(self.store.atom("init").get(), (0, None))

    def test_dispatch_init_skips_edit_mode_and_missing_handler(self) -> None:
        component = {"uuid": "c1", "event": {"onInit": "set_atom('init', True)"}}
        self.assertEqual(self.dispatcher.dispatch_init(False, component), DispatchOutcome.IGNORED)
        self.assertFalse(self.store.has_atom("init"))
        outcome = self.dispatcher.dispatch_init(True, {"uuid": "c2"})
        self.assertEqual(outcome, DispatchOutcome.MISSING)
        self.assertEqual(len(self.store.diagnostics), 0)

    def test_dispatch_many_continues_after_failure(self) -> None:
        failing = {"uuid": "bad", "event": {"onClick": "raise ValueError('x')"}}
        working = {"uuid": "good", "event": {"onClick": "set_atom('ok', True)"}}
        with self.assertLogs("component_runtime.handlers.kernel", level="WARNING"):
            outcomes = self.dispatcher.dispatch_many(
                True,
                [
                    EventInvocation(component=failing, event_name="onClick", raw_event={}),
                    EventInvocation(component=working, event_name="onClick", raw_event={}),
                ],
            )
        self.assertEqual(outcomes, [DispatchOutcome.FAILED, DispatchOutcome.COMPLETED])
        self.assertTrue(self.store.atom("ok").get())

    def test_has_handler_and_handler_names(self) -> None:
        component = {
            "uuid": "c1",
            "event": {"onClick": "pass", "onBlur": "", "nested": {"onSave": "pass"}, "onFocus": None},
        }
        self.assertTrue(self.dispatcher.has_handler(component, "onClick"))
        self.assertFalse(self.dispatcher.has_handler(component, "onBlur"))
        self.assertFalse(self.dispatcher.has_handler(component, "onFocus"))
        self.assertEqual(self.dispatcher.handler_names(component), ["nested.onSave", "onClick"])

    def test_debounce_without_loop_dispatches_immediately(self) -> None:
        component = {"uuid": "c1", "event": {"onChange": "set_atom('v', context.value)"}}
        result = self.dispatcher.debounce("c1", True, component, None, "onChange", None, {"value": 1})
        self.assertIsNone(result)
        self.assertEqual(self.store.atom("v").get(), 1)


class DebounceTests(unittest.IsolatedAsyncioTestCase):
    async def test_only_last_call_runs(self) -> None:
        store = _store()
        dispatcher = ComponentEventDispatcher(store, debounce_seconds=0.01)
        component = {"uuid": "c1", "event": {"onChange": "set_atom('calls', get_atom('calls', []) + [context.value])"}}
        for value in ("a", "ab", "abc"):
            dispatcher.debounce("c1", True, component, None, "onChange", None, {"value": value})
        await asyncio.sleep(0)
        self.assertFalse(store.has_atom("calls"))
        await store.tasks.await_all()
        self.assertEqual(store.atom("calls").get(), ["abc"])


if __name__ == "__main__":
    unittest.main()
