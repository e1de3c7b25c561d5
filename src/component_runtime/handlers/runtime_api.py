"""Globals available to handler code while it runs."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import builtins
import logging
from typing import TYPE_CHECKING, Any

from ..components import component_label
from ..identity import FunctionInvoker, SessionUser
from ..resolver import resolve
from ..store import after_commit

if TYPE_CHECKING:
    from ..state import RuntimeStore

CONSOLE_LOGGER = logging.getLogger("component_runtime.handlers.console")

SAFE_BUILTINS: dict[str, Any] = {
    name: getattr(builtins, name)
    for name in (
        "abs",
        "all",
        "any",
        "bool",
        "dict",
        "divmod",
        "enumerate",
        "filter",
        "float",
        "frozenset",
        "int",
        "isinstance",
        "len",
        "list",
        "map",
        "max",
        "min",
        "range",
        "repr",
        "reversed",
        "round",
        "set",
        "sorted",
        "str",
        "sum",
        "tuple",
        "zip",
        "Exception",
        "ArithmeticError",
        "KeyError",
        "IndexError",
        "LookupError",
        "RuntimeError",
        "TypeError",
        "ValueError",
        "ZeroDivisionError",
    )
}


class HandlerConsole:
    """``console`` object for handler code, backed by a dedicated logger."""

    def __init__(self, component: str, event_name: str) -> None:
        self._component = component
        self._event_name = event_name

    def _emit(self, level: int, args: tuple[Any, ...]) -> None:
        message = " ".join(str(arg) for arg in args)
        CONSOLE_LOGGER.log(
            level,
            "handler.console",
            extra={
                "event": "handler.console",
                "component": self._component,
                "event_name": self._event_name,
                "text": message,
            },
        )

    def log(self, *args: Any) -> None:
        self._emit(logging.INFO, args)

    info = log

    def debug(self, *args: Any) -> None:
        self._emit(logging.DEBUG, args)

    def warn(self, *args: Any) -> None:
        self._emit(logging.WARNING, args)

    warning = warn

    def error(self, *args: Any) -> None:
        self._emit(logging.ERROR, args)


class RuntimeApi:
    """Store and collaborator operations exposed to one handler execution."""

    def __init__(
        self,
        store: RuntimeStore,
        component: Any,
        event_name: str,
        *,
        invoker: FunctionInvoker | None = None,
    ) -> None:
        self._store = store
        self._component = component
        self._event_name = event_name
        self._invoker = invoker
        self.console = HandlerConsole(component_label(component), event_name)

    @property
    def _context_id(self) -> str:
        application_id = resolve(self._component, "application_id")
        if isinstance(application_id, str) and application_id:
            return application_id
        return self._store.application_id or "global"

    def _application_of(self, uuid: str) -> str:
        component = self._store.get_component(uuid)
        if component is not None and component.application_id:
            return component.application_id
        for application_id, components in self._store.components.get().items():
            if any(c.uuid == uuid for c in components):
                return application_id
        return self._context_id

    # -- variables ----------------------------------------------------------

    def get_var(self, name: str) -> Any:
        return self._store.get_var_value(self._context_id, name)

    def set_var(self, name: str, value: Any) -> None:
        self._store.set_var(self._context_id, name, value)

    def get_context_var(self, context_id: str, name: str) -> Any:
        return self._store.get_var_value(context_id, name)

    def set_context_var(self, context_id: str, name: str, value: Any) -> None:
        self._store.set_var(context_id, name, value)

    def get_atom(self, name: str, default: Any = None) -> Any:
        return self._store.atom(name, default).get()

    def set_atom(self, name: str, value: Any) -> None:
        self._store.atom(name).set(value)

    # -- components -----------------------------------------------------------

    def get_component(self, uuid: str) -> Any:
        return self._store.get_component(uuid)

    def get_components(self, uuids: Iterable[str]) -> list[Any]:
        return self._store.get_components(uuids)

    def _patch(self, uuid: str, attribute: str, patch: Mapping[str, Any]) -> None:
        self._store.update_component_attributes(self._application_of(uuid), uuid, attribute, patch)

    def update_input(self, uuid: str, patch: Mapping[str, Any]) -> None:
        self._patch(uuid, "input", patch)

    def update_input_handlers(self, uuid: str, patch: Mapping[str, Any]) -> None:
        self._patch(uuid, "inputHandlers", patch)

    def update_style(self, uuid: str, patch: Mapping[str, Any]) -> None:
        self._patch(uuid, "style", patch)

    def update_event(self, uuid: str, patch: Mapping[str, Any]) -> None:
        self._patch(uuid, "event", patch)

    def update_style_handlers(self, uuid: str, patch: Mapping[str, Any]) -> None:
        self._patch(uuid, "styleHandlers", patch)

    def update_name(self, uuid: str, name: str) -> None:
        self._store.update_component_name(self._application_of(uuid), uuid, name)

    def add_component(self, component: Mapping[str, Any]) -> Any:
        """Add a component to its own application, or to the handler's."""
        application_id = resolve(component, "application_id")
        if not isinstance(application_id, str) or not application_id:
            application_id = self._context_id
        return self._store.add_component(application_id, component)

    def delete_component(self, uuid: str) -> bool:
        return self._store.delete_component(self._application_of(uuid), uuid)

    def refresh_component(self, uuid: str) -> bool:
        return self._store.request_refresh(uuid)

    # -- editor, bus and collaborators ----------------------------------------

    def open_editor_tab(self, tab: str) -> None:
        self._store.open_editor_tab(tab)

    def set_current_editor_tab(self, tab: str | None) -> None:
        self._store.current_editor_tab.set(tab)

    def emit(self, topic: str, payload: Any = None) -> None:
        bus = self._store.bus
        after_commit(lambda: bus.publish(topic, payload))

    def current_user(self) -> SessionUser | None:
        return self._store.current_user.get()

    async def invoke_function(self, name: str, payload: Any = None) -> Any:
        if self._invoker is None:
            raise RuntimeError(f"No function invoker is configured to run {name!r}.")
        return await self._invoker.invoke(name, payload)

    def namespace(self) -> dict[str, Any]:
        """Fresh globals mapping for a handler function."""
        names = (
            "get_var",
            "set_var",
            "get_context_var",
            "set_context_var",
            "get_atom",
            "set_atom",
            "get_component",
            "get_components",
            "update_input",
            "update_input_handlers",
            "update_style",
            "update_event",
            "update_style_handlers",
            "update_name",
            "add_component",
            "delete_component",
            "refresh_component",
            "open_editor_tab",
            "set_current_editor_tab",
            "emit",
            "current_user",
            "invoke_function",
        )
        namespace: dict[str, Any] = {name: getattr(self, name) for name in names}
        namespace["console"] = self.console
        namespace["__builtins__"] = dict(SAFE_BUILTINS)
        namespace["__name__"] = "component_runtime.handler"
        return namespace
