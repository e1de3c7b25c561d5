"""Route UI events to handlers, or to editor selection outside preview mode."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
import logging
from typing import Any

from .components import component_label
from .context import ClosureContext, EventInvocation, build_context
from .event_catalog import configured_events
from .handlers.kernel import ExecutionKernel, ExecutionOutcome
from .resolver import resolve
from .state import RuntimeStore
from .store import detached_context

LOGGER = logging.getLogger(__name__)

SELECT_EVENT = "onClick"
INIT_EVENT = "onInit"

SelectCallback = Callable[[Any], None]


class DispatchOutcome(str, Enum):
    SELECTED = "selected"
    IGNORED = "ignored"
    MISSING = "missing"
    COMPLETED = "completed"
    SCHEDULED = "scheduled"
    FAILED = "failed"

    @classmethod
    def from_execution(cls, outcome: ExecutionOutcome) -> DispatchOutcome:
        return cls(outcome.value)


class ComponentEventDispatcher:
    """Boundary between rendered components and the execution kernel."""

    def __init__(
        self,
        store: RuntimeStore,
        kernel: ExecutionKernel | None = None,
        *,
        debounce_seconds: float = 0.3,
    ) -> None:
        self.store = store
        self.kernel = kernel if kernel is not None else ExecutionKernel(store)
        self.debounce_seconds = debounce_seconds

    def dispatch(
        self,
        is_view_mode: bool,
        component: Any,
        item: Any,
        event_name: str,
        raw_event: Any = None,
        extra_data: Mapping[str, Any] | None = None,
        on_select: SelectCallback | None = None,
    ) -> DispatchOutcome:
        """Handle one UI event.

        Outside view mode configured handlers never run: an ``onClick`` with
        an event object selects the component through ``on_select`` and
        every other event is ignored. In view mode the handler at
        ``event.<event_name>`` runs against the merged closure context.
        """
        if not is_view_mode:
            return self._select(component, event_name, raw_event, on_select)

        context = build_context(component, item, extra_data, raw_event)
        outcome = self.kernel.execute(
            component, f"event.{event_name}", context, item, event_name=event_name
        )
        return DispatchOutcome.from_execution(outcome)

    def _select(
        self,
        component: Any,
        event_name: str,
        raw_event: Any,
        on_select: SelectCallback | None,
    ) -> DispatchOutcome:
        if event_name != SELECT_EVENT or raw_event is None or on_select is None:
            return DispatchOutcome.IGNORED
        try:
            on_select(raw_event)
        except Exception as exc:  # noqa: BLE001 - editor callbacks must not break the render cycle.
            LOGGER.warning(
                "dispatch.select.failed",
                extra={
                    "event": "dispatch.select.failed",
                    "component": component_label(component),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return DispatchOutcome.FAILED
        return DispatchOutcome.SELECTED

    def dispatch_init(self, is_view_mode: bool, component: Any, item: Any = None) -> DispatchOutcome:
        """Run ``event.onInit`` once a component is mounted in view mode.

        A component without an ``onInit`` handler is skipped silently.
        """
        if not is_view_mode:
            return DispatchOutcome.IGNORED
        if not self.has_handler(component, INIT_EVENT):
            return DispatchOutcome.MISSING
        outcome = self.kernel.execute(
            component, f"event.{INIT_EVENT}", ClosureContext(), item, event_name=INIT_EVENT
        )
        return DispatchOutcome.from_execution(outcome)

    def dispatch_many(
        self,
        is_view_mode: bool,
        invocations: Iterable[EventInvocation],
        on_select: SelectCallback | None = None,
    ) -> list[DispatchOutcome]:
        """Dispatch invocations in order; one failing never stops the rest."""
        return [
            self.dispatch(
                is_view_mode,
                invocation.component,
                invocation.item,
                invocation.event_name,
                invocation.raw_event,
                invocation.extra_data,
                on_select,
            )
            for invocation in invocations
        ]

    def has_handler(self, component: Any, event_name: str) -> bool:
        source = resolve(component, f"event.{event_name}")
        return isinstance(source, str) and bool(source.strip())

    def handler_names(self, component: Any) -> list[str]:
        return sorted(
            name
            for name in configured_events(resolve(component, "event"))
            if self.has_handler(component, name)
        )

    def debounce(
        self,
        key: str,
        is_view_mode: bool,
        component: Any,
        item: Any,
        event_name: str,
        raw_event: Any = None,
        extra_data: Mapping[str, Any] | None = None,
        on_select: SelectCallback | None = None,
        *,
        delay: float | None = None,
    ) -> asyncio.Task[Any] | None:
        """Dispatch after ``delay`` seconds unless another call with ``key`` follows.

        Only the last call within the window runs. Without a running event
        loop the event is dispatched immediately and ``None`` is returned.
        """
        wait = self.debounce_seconds if delay is None else delay

        async def _later() -> None:
            await asyncio.sleep(wait)
            self.dispatch(
                is_view_mode, component, item, event_name, raw_event, extra_data, on_select
            )

        try:
            return self.store.tasks.schedule(
                _later(), name=f"debounce:{key}", context=detached_context()
            )
        except RuntimeError:
            LOGGER.debug(
                "dispatch.debounce.immediate",
                extra={"event": "dispatch.debounce.immediate", "key": key},
            )
            self.dispatch(is_view_mode, component, item, event_name, raw_event, extra_data, on_select)
            return None
