"""Textual widgets rendered from component definitions."""

from __future__ import annotations

import logging
import re
from typing import Any

from textual.message import Message
from textual.widget import Widget
from textual.widgets import Button, Checkbox, Input, Static

from ..components import ComponentDefinition

LOGGER = logging.getLogger(__name__)

_INVALID_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def widget_id(uuid: str) -> str:
    return "component-" + _INVALID_ID_CHARS.sub("_", uuid)


def _display_text(component: ComponentDefinition) -> str:
    for name in ("label", "value", "text"):
        value = component.input_value(name)
        if value not in (None, ""):
            return str(value)
    return component.name or component.uuid


class ComponentLabel(Static):
    """Static text that reports clicks, since plain labels do not."""

    class Clicked(Message):
        def __init__(self, label: ComponentLabel) -> None:
            super().__init__()
            self.label = label

    def on_click(self) -> None:
        self.post_message(self.Clicked(self))


def build_component_widget(component: ComponentDefinition, *, selected: bool = False) -> Widget:
    """Return the widget for ``component``; unknown kinds render as text."""
    kind = component.component_type
    widget: Widget
    if kind == "button":
        widget = Button(_display_text(component), id=widget_id(component.uuid))
    elif kind == "text_input":
        placeholder = component.input_value("placeholder", "")
        widget = Input(
            value=str(component.input_value("value", "") or ""),
            placeholder=str(placeholder or ""),
            id=widget_id(component.uuid),
        )
    elif kind == "checkbox":
        widget = Checkbox(
            str(component.input_value("label", component.name) or ""),
            value=bool(component.input_value("checked", component.input_value("value", False))),
            id=widget_id(component.uuid),
        )
    else:
        widget = ComponentLabel(_display_text(component), id=widget_id(component.uuid))

    widget.component_uuid = component.uuid  # type: ignore[attr-defined]
    widget.add_class("component")
    if selected:
        widget.add_class("selected")
    _apply_style(widget, component.style)
    return widget


def _apply_style(widget: Widget, style: dict[str, Any]) -> None:
    display = style.get("display")
    if isinstance(display, str) and display.strip().lower() == "none":
        widget.display = False
    for name in ("color", "background", "width"):
        value = style.get(name)
        if value in (None, ""):
            continue
        try:
            setattr(widget.styles, name, value)
        except Exception as exc:  # noqa: BLE001 - author styles are free-form.
            LOGGER.debug(
                "widget.style.ignored",
                extra={"event": "widget.style.ignored", "property": name, "error": str(exc)},
            )


def component_uuid_of(widget: Any) -> str | None:
    value = getattr(widget, "component_uuid", None)
    return value if isinstance(value, str) else None
