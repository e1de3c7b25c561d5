"""Event names each component kind is able to fire."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .resolver import resolve

# Fired by every component when it is mounted in preview mode.
COMMON_EVENTS = frozenset({"onInit"})

SUPPORTED_EVENTS: dict[str, frozenset[str]] = {
    "button": frozenset({"onClick", "onButtonClicked", "onLinkNavigation"}),
    "text_input": frozenset({"onChange", "onFocus", "onBlur", "onEnter", "onClear"}),
    "textarea": frozenset({"onChange", "onFocus", "onBlur", "onClear", "onResize"}),
    "number_input": frozenset({"onChange", "onFocus", "onBlur", "onEnter"}),
    "text_label": frozenset({"onClick"}),
    "checkbox": frozenset({"onChange"}),
    "radio": frozenset({"onChange"}),
    "select": frozenset({"onChange", "onFocus", "onBlur", "onClear"}),
    "table": frozenset({"onSelect", "onSort", "onSearch", "onPaginate"}),
    "tabs": frozenset({"onTabChanged"}),
    "card": frozenset({"onClick"}),
    "container": frozenset({"onClick"}),
    "collection": frozenset({"onClick", "onSelect"}),
}


def supported_events(component_type: str) -> frozenset[str] | None:
    """Return the events ``component_type`` fires, or ``None`` if unknown."""
    events = SUPPORTED_EVENTS.get(component_type)
    if events is None:
        return None
    return events | COMMON_EVENTS


def configured_events(event_map: Any, prefix: str = "") -> list[str]:
    """Flatten a component's ``event`` map into dotted handler names."""
    names: list[str] = []
    if not isinstance(event_map, Mapping):
        return names
    for key, value in event_map.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            names.extend(configured_events(value, f"{name}."))
        elif value is not None:
            names.append(name)
    return names


def unknown_events(component: Any) -> list[str]:
    """Configured event names that the component's kind never fires.

    Components of an unregistered kind are not checked.
    """
    component_type = resolve(component, "component_type")
    if not isinstance(component_type, str):
        return []
    allowed = supported_events(component_type)
    if allowed is None:
        return []
    return [
        name
        for name in configured_events(resolve(component, "event"))
        if name.split(".", 1)[0] not in allowed
    ]


def register_component_kind(component_type: str, events: Iterable[str]) -> None:
    """Add or extend the event list of a component kind."""
    current = SUPPORTED_EVENTS.get(component_type, frozenset())
    SUPPORTED_EVENTS[component_type] = current | frozenset(events)
