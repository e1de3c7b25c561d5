"""Tests for closure context construction."""

from __future__ import annotations

import unittest

from component_runtime.context import ClosureContext, build_context, isolate_item


class BuildContextTests(unittest.TestCase):
    """Caller-supplied data wins over the raw event binding."""

    def test_raw_event_bound_under_event(self) -> None:
        raw = {"type": "click"}
        context = build_context({"uuid": "c1"}, None, None, raw)
        self.assertIs(context["event"], raw)
        self.assertIs(context.event, raw)

    def test_extra_data_merged_over_event(self) -> None:
        context = build_context({}, None, {"value": 3, "option": "a"}, {"type": "change"})
        self.assertEqual(context.value, 3)
        self.assertEqual(context["option"], "a")
        self.assertEqual(context.event, {"type": "change"})

    def test_falsy_extra_values_are_preserved(self) -> None:
        for falsy in (0, False, "", None, [], {}):
            with self.subTest(value=falsy):
                context = build_context({}, None, {"value": falsy}, {"value": "from-event"})
                self.assertIn("value", context)
                self.assertEqual(context["value"], falsy)

    def test_extra_data_can_replace_event_key(self) -> None:
        context = build_context({}, None, {"event": 0}, {"type": "click"})
        self.assertEqual(context["event"], 0)

    def test_component_and_item_are_not_merged(self) -> None:
        context = build_context({"uuid": "c1", "name": "btn"}, {"id": 7}, {"value": 1}, None)
        self.assertEqual(set(context), {"event", "value"})

    def test_unknown_attribute_is_none_and_context_is_read_only(self) -> None:
        context = ClosureContext({"a": 1})
        self.assertIsNone(context.missing)
        with self.assertRaises(TypeError):
            context["a"] = 2  # type: ignore[index]
        with self.assertRaises(AttributeError):
            context.__wrapped__  # noqa: B018

    def test_as_dict_returns_copy(self) -> None:
        context = ClosureContext({"a": 1})
        data = context.as_dict()
        data["a"] = 2
        self.assertEqual(context["a"], 1)


class _Uncopyable:
    def __deepcopy__(self, memo):  # type: ignore[no-untyped-def]
        raise TypeError("cannot copy")


class IsolateItemTests(unittest.TestCase):
    def test_item_is_deep_copied(self) -> None:
        item = {"tags": ["a"]}
        copied = isolate_item(item)
        copied["tags"].append("b")
        self.assertEqual(item, {"tags": ["a"]})

    def test_absent_item_becomes_empty_dict(self) -> None:
        self.assertEqual(isolate_item(None), {})

    def test_uncopyable_item_is_shared_and_logged(self) -> None:
        item = _Uncopyable()
        with self.assertLogs("component_runtime.context", level="DEBUG") as logs:
            self.assertIs(isolate_item(item), item)
        self.assertEqual(logs.records[0].event, "context.item.copy_failed")  # type: ignore[attr-defined]
        self.assertEqual(logs.records[0].item_type, "_Uncopyable")  # type: ignore[attr-defined]


if __name__ == "__main__":
    unittest.main()
