"""Textual preview application that renders and runs component definitions."""

from __future__ import annotations

from pathlib import Path
import logging
import sys
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, VerticalScroll
from textual.css.query import NoMatches
from textual.widgets import Button, Checkbox, Footer, Header, Input, Static

from .components import ComponentDefinition
from .config import load_config
from .diagnostics import DiagnosticRecord, DiagnosticSink
from .dispatcher import ComponentEventDispatcher
from .events.topics import COMPONENT_REFRESH, DIAGNOSTIC_REPORTED
from .handlers.compiler import HandlerCompiler
from .handlers.kernel import ExecutionKernel
from .identity import FunctionInvoker, UserProvider
from .loader import LoadedApplication, load_definitions
from .logging_utils import configure_logging
from .persistence import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
from .state import RuntimeStore, ViewMode
from .widgets.components import (
    ComponentLabel,
    build_component_widget,
    component_uuid_of,
    widget_id,
)

LOGGER = logging.getLogger(__name__)

# Refresh reasons that change which components exist.
STRUCTURAL_REFRESHES = frozenset({"load", "add", "delete"})


class RuntimePreviewApp(App[None]):
    """Render an application document and route widget events to handlers."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        layout: vertical;
        width: 100%;
        height: 1fr;
    }

    #canvas {
        height: 1fr;
        padding: 1;
    }

    #canvas > .component {
        margin: 0 0 1 0;
    }

    #canvas > .selected {
        border: round $accent;
    }

    #status_bar {
        height: 1;
        padding: 0 1;
        background: $surface;
    }
    """

    BINDINGS = [
        Binding("ctrl+e", "toggle_mode", "Edit/Preview"),
        Binding("ctrl+b", "toggle_left_panel", "Panel", show=False),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        definitions_path: Path | str,
        *,
        config_path: Path | None = None,
        mode: ViewMode | str | None = None,
        kv_store: KeyValueStore | None = None,
        user_provider: UserProvider | None = None,
        invoker: FunctionInvoker | None = None,
    ) -> None:
        self.config = load_config(config_path)
        configure_logging(self.config["logging"])
        LOGGER.info(
            "app.python",
            extra={
                "event": "app.python",
                "executable": sys.executable,
                "version": sys.version.split()[0],
            },
        )
        runtime_cfg = self.config["runtime"]
        super().__init__()

        self.diagnostics = DiagnosticSink(
            max_records=int(runtime_cfg["max_diagnostics"]),
            report_missing_handlers=bool(runtime_cfg["report_missing_handlers"]),
        )
        self.application: LoadedApplication = load_definitions(
            definitions_path,
            diagnostics=self.diagnostics,
            validate_handlers=bool(runtime_cfg["validate_handlers"]),
        )
        self.window_title = self.application.title or str(self.config["app"]["title"])

        self.store = RuntimeStore(
            application_id=self.application.application_id,
            kv_store=kv_store if kv_store is not None else self._build_kv_store(),
            user_provider=user_provider,
            mode=ViewMode(mode or runtime_cfg["mode"]),
            diagnostics=self.diagnostics,
        )
        self.diagnostics.bind_bus(self.store.bus)
        self.kernel = ExecutionKernel(
            self.store,
            compiler=HandlerCompiler(validate=bool(runtime_cfg["validate_handlers"])),
            invoker=invoker,
        )
        self.dispatcher = ComponentEventDispatcher(
            self.store,
            self.kernel,
            debounce_seconds=int(runtime_cfg["debounce_ms"]) / 1000,
        )
        self.store.load_components(self.application.application_id, self.application.components)
        self._input_values: dict[str, str] = {}
        self._rerender_pending = False

    def _build_kv_store(self) -> KeyValueStore:
        persistence_cfg = self.config["persistence"]
        if not persistence_cfg["enabled"]:
            return InMemoryKeyValueStore()
        return JsonFileKeyValueStore(Path(str(persistence_cfg["kv_path"])).expanduser())

    @property
    def is_view_mode(self) -> bool:
        return self.store.is_view_mode

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="app-root"):
            yield VerticalScroll(*self._component_widgets(), id="canvas")
            yield Static("", id="status_bar")
        yield Footer()

    def _component_widgets(self) -> list[Any]:
        selected = self.store.current_component_id.get()
        return [
            build_component_widget(component, selected=component.uuid == selected)
            for component in self.store.application_components()
        ]

    async def on_mount(self) -> None:
        self.title = self.window_title
        self.store.load_preferences()
        self.store.bus.subscribe(COMPONENT_REFRESH, self._on_component_refresh)
        self.store.bus.subscribe(DIAGNOSTIC_REPORTED, self._on_diagnostic)
        self.store.environment.listen(lambda _mode: self._schedule_rerender())
        self.store.current_component_id.listen(lambda _uuid: self._schedule_rerender())
        self._update_status()
        for component in self.store.application_components():
            self.dispatcher.dispatch_init(self.is_view_mode, component)

    async def on_unmount(self) -> None:
        """Cancel and await all background handler tasks during shutdown."""
        await self.store.tasks.cancel_all()
        self.store.close()

    def _on_component_refresh(self, _topic: str, payload: Any) -> None:
        uuid = getattr(payload, "uuid", None)
        if uuid and getattr(payload, "reason", "") not in STRUCTURAL_REFRESHES and self.is_running:
            self.call_later(self._replace_widget, uuid)
            return
        self._schedule_rerender()

    def _on_diagnostic(self, _topic: str, record: DiagnosticRecord) -> None:
        self._update_status(f"{record.kind.value}: {record.component} {record.event_name}")

    def _schedule_rerender(self) -> None:
        if self._rerender_pending or not self.is_running:
            return
        self._rerender_pending = True
        self.call_later(self._rerender)

    async def _rerender(self) -> None:
        self._rerender_pending = False
        canvas = self.query_one("#canvas", VerticalScroll)
        await canvas.remove_children()
        await canvas.mount_all(self._component_widgets())
        self._update_status()

    async def _replace_widget(self, uuid: str) -> None:
        """Swap one component widget in place, keeping its siblings mounted."""
        canvas = self.query_one("#canvas", VerticalScroll)
        try:
            current = canvas.query_one(f"#{widget_id(uuid)}")
        except NoMatches:
            return
        component = self.store.get_component(uuid)
        index = canvas.children.index(current)
        await current.remove()
        if component is None:
            return
        widget = build_component_widget(
            component, selected=component.uuid == self.store.current_component_id.get()
        )
        if index < len(canvas.children):
            await canvas.mount(widget, before=index)
        else:
            await canvas.mount(widget)

    def _update_status(self, message: str = "") -> None:
        mode = "preview" if self.is_view_mode else "edit"
        parts = [f"Mode: {mode}"]
        selected = self.store.current_component_id.get()
        if selected and not self.is_view_mode:
            parts.append(f"Selected: {selected}")
        parts.append(f"Diagnostics: {len(self.diagnostics)}")
        if message:
            parts.append(message)
        try:
            self.query_one("#status_bar", Static).update(" | ".join(parts))
        except Exception:  # noqa: BLE001 - status bar may not be mounted yet.
            LOGGER.debug("app.status.unavailable", extra={"event": "app.status.unavailable"})

    def _component_for(self, widget: Any) -> ComponentDefinition | None:
        uuid = component_uuid_of(widget)
        return self.store.get_component(uuid) if uuid else None

    def _dispatch(
        self,
        widget: Any,
        event_name: str,
        raw_event: Any,
        extra_data: dict[str, Any] | None = None,
    ) -> None:
        component = self._component_for(widget)
        if component is None:
            return
        self.dispatcher.dispatch(
            self.is_view_mode,
            component,
            None,
            event_name,
            raw_event,
            extra_data,
            on_select=lambda _event: self.store.select_component(component.uuid),
        )
        self._update_status()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self._dispatch(event.button, "onClick", {"type": "click", "target": event.button.id})

    def on_component_label_clicked(self, event: ComponentLabel.Clicked) -> None:
        self._dispatch(event.label, "onClick", {"type": "click", "target": event.label.id})

    def on_input_changed(self, event: Input.Changed) -> None:
        component = self._component_for(event.input)
        if component is None:
            return
        old_value = self._input_values.get(component.uuid, "")
        self._input_values[component.uuid] = event.value
        if not self.is_view_mode:
            return
        self.dispatcher.debounce(
            component.uuid,
            True,
            component,
            None,
            "onChange",
            {"type": "change", "target": event.input.id},
            {"value": event.value, "oldValue": old_value},
        )

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._dispatch(
            event.input,
            "onEnter",
            {"type": "submit", "target": event.input.id},
            {"value": event.value},
        )

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        self._dispatch(
            event.checkbox,
            "onChange",
            {"type": "change", "target": event.checkbox.id},
            {"value": event.value},
        )

    def action_toggle_mode(self) -> None:
        next_mode = ViewMode.EDIT if self.is_view_mode else ViewMode.PREVIEW
        self.store.set_mode(next_mode)
        if next_mode is ViewMode.PREVIEW:
            for component in self.store.application_components():
                self.dispatcher.dispatch_init(True, component)

    def action_toggle_left_panel(self) -> None:
        collapsed = self.store.toggle_left_panel()
        self._update_status(f"Panel {'collapsed' if collapsed else 'expanded'}")
