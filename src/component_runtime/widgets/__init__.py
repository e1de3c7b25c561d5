"""Textual widgets for the preview application."""

from .components import ComponentLabel, build_component_widget, component_uuid_of, widget_id

__all__ = ["ComponentLabel", "build_component_widget", "component_uuid_of", "widget_id"]
