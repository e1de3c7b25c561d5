"""Application and editor state: the runtime's atoms, bus and update actions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
import logging
from typing import Any

from .components import MERGEABLE_ATTRIBUTES, ComponentDefinition, as_definition
from .diagnostics import DiagnosticSink
from .events.bus import EventBus
from .events.topics import (
    COMPONENT_REFRESH,
    EDITOR_TAB_OPENED,
    ComponentPropertyChanged,
    ComponentRefresh,
    component_property_changed,
    component_refresh_request,
)
from .identity import SessionUser, UserProvider
from .persistence import InMemoryKeyValueStore, KeyValueStore
from .store import Atom, PersistentAtom, after_commit
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

GLOBAL_CONTEXT = "global"
LEFT_PANEL_PREF_KEY = "_user_prefs/left_panel_collapsed"

ComponentsByApplication = dict[str, list[ComponentDefinition]]


class ViewMode(str, Enum):
    """Whether the authoring surface or the live application is active."""

    EDIT = "edit"
    PREVIEW = "preview"


def value_type(value: Any) -> str:
    """Type tag stored next to each context variable."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


class RuntimeStore:
    """Owns every atom of one application session.

    Construct at session start, inject into the kernel and dispatcher, and
    call ``close()`` at session end.
    """

    def __init__(
        self,
        *,
        application_id: str = "",
        kv_store: KeyValueStore | None = None,
        user_provider: UserProvider | None = None,
        tasks: TaskManager | None = None,
        mode: ViewMode = ViewMode.EDIT,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self.application_id = application_id
        self.bus = EventBus()
        self.tasks = tasks if tasks is not None else TaskManager()
        self.kv_store: KeyValueStore = (
            kv_store if kv_store is not None else InMemoryKeyValueStore()
        )
        self._user_provider = user_provider
        self.diagnostics = (
            diagnostics if diagnostics is not None else DiagnosticSink(bus=self.bus)
        )
        self._atoms: dict[str, Atom[Any]] = {}

        self.environment = self._register(Atom("environment", mode))
        self.current_editor_tab = self._register(Atom[str | None]("current_editor_tab", None))
        self.open_editor_tabs = self._register(Atom[list[str]]("open_editor_tabs", []))
        self.current_component_id = self._register(
            Atom[str | None]("current_component_id", None)
        )
        self.current_workflow = self._register(
            Atom[dict[str, Any] | None]("current_workflow", None)
        )
        self.current_user = self._register(Atom[SessionUser | None]("current_user", None))
        self.context_vars = self._register(
            Atom[dict[str, dict[str, dict[str, Any]]]]("context_vars", {GLOBAL_CONTEXT: {}})
        )
        self.components = self._register(Atom[ComponentsByApplication]("components", {}))
        self.left_panel_collapsed = self._register(
            PersistentAtom(
                "left_panel_collapsed",
                False,
                kv_store=self.kv_store,
                key=LEFT_PANEL_PREF_KEY,
                application_id=lambda: self.application_id,
                scope="user",
                tasks=self.tasks,
            )
        )
        self.left_panel_collapsed.on_persist_error = self.diagnostics.persistence_failure
        self.refresh_user()

    def _register(self, atom: Atom[Any]) -> Any:
        self._atoms[atom.name] = atom
        return atom

    def _publish(self, topic: str, payload: Any) -> None:
        after_commit(lambda: self.bus.publish(topic, payload))

    # -- generic atoms ----------------------------------------------------

    def atom(self, name: str, default: Any = None) -> Atom[Any]:
        """Return the atom called ``name``, creating it with ``default``."""
        existing = self._atoms.get(name)
        if existing is None:
            existing = self._register(Atom(name, default))
        return existing

    def has_atom(self, name: str) -> bool:
        return name in self._atoms

    @property
    def atom_names(self) -> list[str]:
        return sorted(self._atoms)

    @property
    def is_view_mode(self) -> bool:
        return self.environment.get() == ViewMode.PREVIEW

    def set_mode(self, mode: ViewMode | str) -> None:
        self.environment.set(ViewMode(mode))

    def load_preferences(self) -> None:
        """Restore persistent atoms from the key-value store."""
        for atom in self._atoms.values():
            if isinstance(atom, PersistentAtom):
                atom.load()

    def close(self) -> None:
        """Tear down the session: dispose every atom and clear the bus."""
        for atom in self._atoms.values():
            atom.dispose()
        self.bus.clear()

    # -- identity ---------------------------------------------------------

    def refresh_user(self) -> SessionUser | None:
        if self._user_provider is None:
            return self.current_user.get()
        user = self._user_provider()
        self.current_user.set(user)
        return user

    # -- context variables ------------------------------------------------

    def set_var(self, context_id: str, name: str, value: Any) -> None:
        current = self.context_vars.get()
        scope = dict(current.get(context_id) or {})
        scope[name] = {"type": value_type(value), "value": value}
        self.context_vars.set({**current, context_id: scope})

    def get_var(self, context_id: str, name: str) -> dict[str, Any] | None:
        scope = self.context_vars.get().get(context_id) or {}
        return scope.get(name)

    def get_var_value(self, context_id: str, name: str) -> Any:
        variable = self.get_var(context_id, name)
        return variable["value"] if variable is not None else None

    # -- editor -----------------------------------------------------------

    def open_editor_tab(self, tab: str) -> None:
        tabs = self.open_editor_tabs.get()
        if tab not in tabs:
            self.open_editor_tabs.set([*tabs, tab])
        self.current_editor_tab.set(tab)
        self._publish(EDITOR_TAB_OPENED, {"tab": tab})

    def close_editor_tab(self, tab: str) -> None:
        tabs = [t for t in self.open_editor_tabs.get() if t != tab]
        self.open_editor_tabs.set(tabs)
        if self.current_editor_tab.get() == tab:
            self.current_editor_tab.set(tabs[-1] if tabs else None)

    def select_component(self, uuid: str | None) -> None:
        self.current_component_id.set(uuid)

    def toggle_left_panel(self) -> bool:
        collapsed = not self.left_panel_collapsed.get()
        self.left_panel_collapsed.set(collapsed)
        return collapsed

    # -- components -------------------------------------------------------

    def load_components(
        self,
        application_id: str,
        definitions: Iterable[ComponentDefinition | Mapping[str, Any]],
    ) -> list[ComponentDefinition]:
        loaded = [as_definition(item) for item in definitions]
        self.components.set({**self.components.get(), application_id: loaded})
        self._publish_refresh(application_id, None, "load")
        return loaded

    def application_components(self, application_id: str | None = None) -> list[ComponentDefinition]:
        return list(self.components.get().get(application_id or self.application_id, []))

    def get_component(self, uuid: str) -> ComponentDefinition | None:
        for components in self.components.get().values():
            for component in components:
                if component.uuid == uuid:
                    return component
        return None

    def get_components(self, uuids: Iterable[str]) -> list[ComponentDefinition]:
        wanted = set(uuids)
        return [
            component
            for components in self.components.get().values()
            for component in components
            if component.uuid in wanted
        ]

    def add_component(
        self, application_id: str, component: ComponentDefinition | Mapping[str, Any]
    ) -> ComponentDefinition:
        definition = as_definition(component)
        if not definition.application_id:
            definition = definition.model_copy(update={"application_id": application_id})
        current = self.components.get()
        self.components.set(
            {**current, application_id: [*current.get(application_id, []), definition]}
        )
        self._publish_refresh(application_id, definition.uuid, "add")
        return definition

    def delete_component(self, application_id: str, uuid: str) -> bool:
        current = self.components.get()
        remaining = [c for c in current.get(application_id, []) if c.uuid != uuid]
        if len(remaining) == len(current.get(application_id, [])):
            return False
        self.components.set({**current, application_id: remaining})
        if self.current_component_id.get() == uuid:
            self.current_component_id.set(None)
        self._publish_refresh(application_id, uuid, "delete")
        return True

    def request_refresh(self, uuid: str) -> bool:
        """Ask the render layer to redraw one component.

        Publishes ``component:request:refresh:<uuid>`` and a ``request``
        refresh. Returns False when no such component is loaded.
        """
        component = self.get_component(uuid)
        if component is None:
            return False
        self._publish(component_refresh_request(uuid), {"uuid": uuid})
        self._publish_refresh(component.application_id or self.application_id, uuid, "request")
        return True

    def update_component_attributes(
        self,
        application_id: str,
        uuid: str,
        attribute: str,
        patch: Mapping[str, Any],
    ) -> ComponentDefinition | None:
        """Merge ``patch`` into one map attribute of a component.

        ``attribute`` is one of ``style``, ``input``, ``inputHandlers``,
        ``styleHandlers`` or ``event``.
        """
        if attribute not in MERGEABLE_ATTRIBUTES:
            raise ValueError(f"Attribute {attribute!r} cannot be patched.")
        updated = self._replace_component(
            application_id, uuid, lambda c: c.with_attribute_patch(attribute, patch)
        )
        if updated is not None:
            self._publish_property_change(updated, attribute, dict(patch))
        return updated

    def update_component_name(
        self, application_id: str, uuid: str, name: str
    ) -> ComponentDefinition | None:
        previous = self._find(application_id, uuid)
        updated = self._replace_component(
            application_id, uuid, lambda c: c.model_copy(update={"name": name})
        )
        if updated is not None and previous is not None:
            self._publish(
                component_property_changed(previous.name),
                {"uuid": uuid, "attribute": "name", "name": name},
            )
            self._publish_property_change(updated, "name", {"name": name})
        return updated

    def _find(self, application_id: str, uuid: str) -> ComponentDefinition | None:
        for component in self.components.get().get(application_id, []):
            if component.uuid == uuid:
                return component
        return None

    def _replace_component(self, application_id: str, uuid: str, change: Any) -> ComponentDefinition | None:
        current = self.components.get()
        components = current.get(application_id, [])
        updated: ComponentDefinition | None = None
        replaced: list[ComponentDefinition] = []
        for component in components:
            if component.uuid == uuid:
                updated = change(component)
                replaced.append(updated)
            else:
                replaced.append(component)
        if updated is None:
            LOGGER.warning(
                "state.component.missing",
                extra={
                    "event": "state.component.missing",
                    "application_id": application_id,
                    "uuid": uuid,
                },
            )
            return None
        self.components.set({**current, application_id: replaced})
        return updated

    def _publish_property_change(
        self, component: ComponentDefinition, attribute: str, patch: dict[str, Any]
    ) -> None:
        payload = ComponentPropertyChanged(
            application_id=component.application_id,
            uuid=component.uuid,
            name=component.name,
            attribute=attribute,
            patch=patch,
            timestamp=datetime.now(UTC),
        )
        self._publish(component_property_changed(component.name), payload)
        self._publish_refresh(component.application_id, component.uuid, attribute)

    def _publish_refresh(self, application_id: str, uuid: str | None, reason: str) -> None:
        self._publish(
            COMPONENT_REFRESH,
            ComponentRefresh(
                application_id=application_id,
                uuid=uuid,
                reason=reason,
                timestamp=datetime.now(UTC),
            ),
        )
