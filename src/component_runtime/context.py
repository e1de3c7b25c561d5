"""Closure context construction for handler execution."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
import copy
import logging
from dataclasses import dataclass, field
from typing import Any

LOGGER = logging.getLogger(__name__)


class ClosureContext(Mapping[str, Any]):
    """Read-only merged view of event data handed to a handler.

    Keys are reachable both as items (``context["value"]``) and as
    attributes (``context.value``). Unknown attributes resolve to ``None``.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return self._data.get(name)

    def __repr__(self) -> str:
        return f"ClosureContext({self._data!r})"

    def as_dict(self) -> dict[str, Any]:
        return dict(self._data)


@dataclass(frozen=True)
class EventInvocation:
    """One UI interaction routed to a component handler."""

    component: Any
    event_name: str
    item: Any = None
    raw_event: Any = None
    extra_data: Mapping[str, Any] | None = field(default=None)


def build_context(
    component: Any,
    item: Any,
    extra_data: Mapping[str, Any] | None,
    raw_event: Any,
) -> ClosureContext:
    """Merge ``extra_data`` over ``{"event": raw_event}``.

    Caller-supplied keys win over the raw event binding, including falsy
    values such as ``0``, ``False`` and ``""``. ``component`` and ``item``
    are not merged; they travel beside the context as separate bindings.
    """
    merged: dict[str, Any] = {"event": raw_event}
    if extra_data is not None:
        merged.update(extra_data)
    return ClosureContext(merged)


def isolate_item(item: Any) -> Any:
    """Return a private copy of the iteration item for one execution.

    Items that cannot be deep-copied are passed through shared.
    """
    if item is None:
        return {}
    try:
        return copy.deepcopy(item)
    except Exception as exc:  # noqa: BLE001 - arbitrary objects may refuse to copy.
        LOGGER.debug(
            "context.item.copy_failed",
            extra={
                "event": "context.item.copy_failed",
                "item_type": type(item).__name__,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return item
