"""Event bus and topic names for cross-component notifications."""

from .bus import EventBus, ListenerList, Subscription
from .topics import (
    COMPONENT_REFRESH,
    DIAGNOSTIC_REPORTED,
    EDITOR_TAB_OPENED,
    ComponentPropertyChanged,
    ComponentRefresh,
    component_property_changed,
    component_refresh_request,
)

__all__ = [
    "COMPONENT_REFRESH",
    "DIAGNOSTIC_REPORTED",
    "EDITOR_TAB_OPENED",
    "ComponentPropertyChanged",
    "ComponentRefresh",
    "EventBus",
    "ListenerList",
    "Subscription",
    "component_property_changed",
    "component_refresh_request",
]
