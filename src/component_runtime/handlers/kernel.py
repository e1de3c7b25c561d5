"""Execution kernel: resolve, compile and run one handler against a context."""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from enum import Enum
import inspect
import logging
from typing import TYPE_CHECKING, Any

from ..components import component_label
from ..context import ClosureContext, isolate_item
from ..diagnostics import DiagnosticSink
from ..exceptions import HandlerCompilationError
from ..identity import FunctionInvoker
from ..resolver import resolve
from ..store import batch, detached_context
from .compiler import HandlerCompiler
from .runtime_api import RuntimeApi

if TYPE_CHECKING:
    from ..state import RuntimeStore

LOGGER = logging.getLogger(__name__)


class ExecutionOutcome(str, Enum):
    COMPLETED = "completed"
    SCHEDULED = "scheduled"
    MISSING = "missing"
    FAILED = "failed"


class ExecutionKernel:
    """Runs author handlers and contains their failures.

    A synchronous handler runs inside a store batch: its writes and the
    notifications they trigger are committed before ``execute`` returns, or
    discarded entirely when it raises. An asynchronous handler is scheduled
    as a task outside any batch, so each of its writes is applied and
    published when it is made, including before a suspension point. Writes
    made before an asynchronous handler fails stay applied.
    """

    def __init__(
        self,
        store: RuntimeStore,
        *,
        diagnostics: DiagnosticSink | None = None,
        compiler: HandlerCompiler | None = None,
        invoker: FunctionInvoker | None = None,
    ) -> None:
        self.store = store
        self.diagnostics = diagnostics if diagnostics is not None else store.diagnostics
        self.compiler = compiler if compiler is not None else HandlerCompiler()
        self.invoker = invoker

    def execute(
        self,
        component: Any,
        handler_path: str,
        context: ClosureContext | Mapping[str, Any] | None,
        item: Any = None,
        *,
        event_name: str | None = None,
    ) -> ExecutionOutcome:
        event_name = event_name or handler_path.removeprefix("event.")
        label = component_label(component)
        source = resolve(component, handler_path)
        if source is None or (isinstance(source, str) and not source.strip()):
            self.diagnostics.resolution_miss(label, event_name)
            return ExecutionOutcome.MISSING
        if not isinstance(source, str):
            return self._failed(
                label,
                event_name,
                TypeError(f"handler at {handler_path} is {type(source).__name__}, not source text"),
            )

        try:
            compiled = self.compiler.compile(source)
        except HandlerCompilationError as exc:
            return self._failed(label, event_name, exc)

        if not isinstance(context, ClosureContext):
            context = ClosureContext(context)
        api = RuntimeApi(self.store, component, event_name, invoker=self.invoker)
        handler = compiled.bind(api.namespace())
        private_item = isolate_item(item)

        if compiled.is_async:
            return self._schedule(label, event_name, handler(context, component, private_item))

        try:
            with batch():
                result = handler(context, component, private_item)
        except Exception as exc:  # noqa: BLE001 - handler failures never reach the dispatcher.
            return self._failed(label, event_name, exc)
        if inspect.isawaitable(result):
            return self._schedule(label, event_name, result)
        LOGGER.debug(
            "kernel.handler.completed",
            extra={"event": "kernel.handler.completed", "component": label, "event_name": event_name},
        )
        return ExecutionOutcome.COMPLETED

    def _schedule(self, label: str, event_name: str, awaitable: Awaitable[Any]) -> ExecutionOutcome:
        async def _run() -> None:
            try:
                await awaitable
            except Exception as exc:  # noqa: BLE001
                self._failed(label, event_name, exc)

        try:
            self.store.tasks.schedule(
                _run(),
                name=None,
                context=detached_context(),
            )
        except RuntimeError as exc:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return self._failed(
                label,
                event_name,
                RuntimeError(f"asynchronous handler needs a running event loop: {exc}"),
            )
        return ExecutionOutcome.SCHEDULED

    def _failed(self, label: str, event_name: str, exc: BaseException) -> ExecutionOutcome:
        LOGGER.warning(
            "kernel.handler.failed",
            extra={
                "event": "kernel.handler.failed",
                "component": label,
                "event_name": event_name,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        self.diagnostics.handler_failure(label, event_name, exc)
        return ExecutionOutcome.FAILED
