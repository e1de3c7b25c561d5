"""Component definition model and the update actions that mutate it."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .resolver import resolve

# Attributes that update actions merge into rather than replace.
MERGEABLE_ATTRIBUTES = frozenset(
    {"style", "input", "inputHandlers", "styleHandlers", "event"}
)


class ComponentDefinition(BaseModel):
    """Loosely-typed component document.

    Known fields are typed; anything else an editor stores on a component is
    kept as an extra field and stays reachable through path resolution.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uuid: str
    name: str = ""
    component_type: str = ""
    application_id: str = ""
    style: dict[str, Any] = Field(default_factory=dict)
    input: dict[str, Any] = Field(default_factory=dict)
    input_handlers: dict[str, Any] = Field(default_factory=dict, alias="inputHandlers")
    style_handlers: dict[str, Any] = Field(default_factory=dict, alias="styleHandlers")
    event: dict[str, Any] = Field(default_factory=dict)
    children_ids: list[str] = Field(default_factory=list, alias="childrenIds")

    @field_validator("uuid", mode="before")
    @classmethod
    def _validate_uuid(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("uuid must be a non-empty string.")
        return value.strip()

    @field_validator(
        "style", "input", "input_handlers", "style_handlers", "event", mode="before"
    )
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    def input_value(self, name: str, default: Any = None) -> Any:
        """Return the static value configured for input ``name``."""
        entry = self.input.get(name)
        if isinstance(entry, Mapping):
            return entry.get("value", default)
        if entry is None:
            return default
        return entry

    def with_attribute_patch(self, attribute: str, patch: Mapping[str, Any]) -> ComponentDefinition:
        """Return a copy with ``patch`` merged into the named map attribute."""
        field_name = _field_for(attribute)
        current = getattr(self, field_name, None)
        merged = dict(current) if isinstance(current, Mapping) else {}
        merged.update(patch)
        return self.model_copy(update={field_name: merged}, deep=True)


def _field_for(attribute: str) -> str:
    for name, info in ComponentDefinition.model_fields.items():
        if attribute in (name, info.alias):
            return name
    return attribute


def as_definition(component: ComponentDefinition | Mapping[str, Any]) -> ComponentDefinition:
    if isinstance(component, ComponentDefinition):
        return component
    return ComponentDefinition.model_validate(dict(component))


def component_label(component: Any) -> str:
    """Best identifier for logs and diagnostics."""
    for path in ("uuid", "name"):
        value = resolve(component, path)
        if isinstance(value, str) and value:
            return value
    return "<anonymous>"
