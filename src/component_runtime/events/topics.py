from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

COMPONENT_REFRESH = "component:refresh"
DIAGNOSTIC_REPORTED = "diagnostic:reported"
EDITOR_TAB_OPENED = "editor:tab-opened"


def component_property_changed(component_name: str) -> str:
    return f"component-property-changed:{component_name}"


def component_refresh_request(component_uuid: str) -> str:
    return f"component:request:refresh:{component_uuid}"


@dataclass
class ComponentPropertyChanged:
    application_id: str
    uuid: str
    name: str
    attribute: str
    patch: dict[str, Any]
    timestamp: datetime


@dataclass
class ComponentRefresh:
    application_id: str
    uuid: str | None
    reason: str
    timestamp: datetime
