"""Tests for dotted-path resolution over component documents."""

from __future__ import annotations

import unittest

from component_runtime.components import ComponentDefinition
from component_runtime.resolver import has_path, resolve


class ResolveTests(unittest.TestCase):
    """Resolution is total: misses return None and nothing raises."""

    def setUp(self) -> None:
        self.document = {
            "uuid": "c1",
            "event": {"onClick": "set_atom('x', 1)", "actions": {"save": "pass"}},
            "style": {"color": "red"},
            "input": {"items": [1, 2, 3], "count": 0},
        }

    def test_resolves_nested_keys(self) -> None:
        self.assertEqual(resolve(self.document, "event.onClick"), "set_atom('x', 1)")
        self.assertEqual(resolve(self.document, "event.actions.save"), "pass")

    def test_missing_prefix_returns_none(self) -> None:
        self.assertIsNone(resolve(self.document, "event.onClose"))
        self.assertIsNone(resolve(self.document, "nothing.at.all"))
        self.assertIsNone(resolve(self.document, "event.actions.save.deeper"))

    def test_non_indexable_intermediate_returns_none(self) -> None:
        self.assertIsNone(resolve(self.document, "style.color.shade"))
        self.assertIsNone(resolve(self.document, "input.items.0"))
        self.assertIsNone(resolve(self.document, "input.count.value"))

    def test_absent_root_and_empty_path(self) -> None:
        self.assertIsNone(resolve(None, "event.onClick"))
        self.assertIsNone(resolve(self.document, ""))

    def test_falsy_leaf_values_are_returned(self) -> None:
        self.assertEqual(resolve(self.document, "input.count"), 0)

    def test_resolves_model_fields_aliases_and_extras(self) -> None:
        component = ComponentDefinition.model_validate(
            {
                "uuid": "c2",
                "inputHandlers": {"value": "return 1"},
                "event": {"onChange": "pass"},
                "meta": {"owner": "ada"},
            }
        )
        self.assertEqual(resolve(component, "event.onChange"), "pass")
        self.assertEqual(resolve(component, "inputHandlers.value"), "return 1")
        self.assertEqual(resolve(component, "input_handlers.value"), "return 1")
        self.assertEqual(resolve(component, "meta.owner"), "ada")
        self.assertIsNone(resolve(component, "meta.missing"))
        self.assertIsNone(resolve(component, "unknown"))

    def test_has_path(self) -> None:
        self.assertTrue(has_path(self.document, "event.onClick"))
        self.assertFalse(has_path(self.document, "event.onBlur"))

    def test_has_path_distinguishes_stored_none_from_miss(self) -> None:
        document = {"event": {"onClick": None}}
        self.assertIsNone(resolve(document, "event.onClick"))
        self.assertTrue(has_path(document, "event.onClick"))
        self.assertFalse(has_path(document, "event.onBlur"))
        self.assertFalse(has_path(document, "event.onClick.deeper"))
        self.assertFalse(has_path(None, "event"))


if __name__ == "__main__":
    unittest.main()
