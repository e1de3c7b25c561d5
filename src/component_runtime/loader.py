"""Load application definition documents from JSON or TOML files."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
import tomllib
from typing import Any

from pydantic import ValidationError

from .components import ComponentDefinition, component_label
from .diagnostics import DiagnosticSink
from .event_catalog import configured_events, unknown_events
from .exceptions import DefinitionLoadError
from .handlers.validator import validate_handler_source
from .resolver import resolve

LOGGER = logging.getLogger(__name__)


@dataclass
class LoadedApplication:
    application_id: str
    title: str = ""
    components: list[ComponentDefinition] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _read_document(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DefinitionLoadError(f"Unable to read definitions from {path}: {exc}") from exc
    try:
        if path.suffix.lower() == ".toml":
            document = tomllib.loads(text)
        else:
            document = json.loads(text)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise DefinitionLoadError(f"Definitions in {path} are not valid: {exc}") from exc
    if not isinstance(document, dict):
        raise DefinitionLoadError(f"Definitions in {path} must be an object at the top level.")
    return document


def load_definitions(
    path: Path | str,
    *,
    diagnostics: DiagnosticSink | None = None,
    validate_handlers: bool = True,
) -> LoadedApplication:
    """Read and validate an application document.

    Structural problems raise ``DefinitionLoadError``. Unknown event names
    and handler sources that fail validation become warnings.
    """
    target = Path(path).expanduser()
    document = _read_document(target)

    application_id = document.get("application_id", "")
    if not isinstance(application_id, str) or not application_id.strip():
        raise DefinitionLoadError(f"Definitions in {target} need a non-empty application_id.")
    application_id = application_id.strip()

    raw_components = document.get("components", [])
    if not isinstance(raw_components, list):
        raise DefinitionLoadError("components must be a list of component objects.")

    loaded = LoadedApplication(application_id=application_id, title=str(document.get("title", "")))
    seen: set[str] = set()
    for index, raw in enumerate(raw_components):
        if not isinstance(raw, dict):
            raise DefinitionLoadError(f"Component #{index} must be an object.")
        raw = {"application_id": application_id, **raw}
        try:
            component = ComponentDefinition.model_validate(raw)
        except ValidationError as exc:
            raise DefinitionLoadError(f"Component #{index} is invalid: {exc}") from exc
        if component.uuid in seen:
            raise DefinitionLoadError(f"Duplicate component uuid {component.uuid!r}.")
        seen.add(component.uuid)
        loaded.components.append(component)
        loaded.warnings.extend(_check_component(component, diagnostics, validate_handlers))

    LOGGER.info(
        "definitions.loaded",
        extra={
            "event": "definitions.loaded",
            "path": str(target),
            "application_id": application_id,
            "components": len(loaded.components),
            "warnings": len(loaded.warnings),
        },
    )
    return loaded


def _check_component(
    component: ComponentDefinition,
    diagnostics: DiagnosticSink | None,
    validate_handlers: bool,
) -> list[str]:
    warnings: list[str] = []
    label = component_label(component)
    for event_name in unknown_events(component):
        message = (
            f"{label}: {component.component_type} components never fire {event_name!r}"
        )
        warnings.append(message)
        LOGGER.warning(
            "definitions.event.unknown",
            extra={"event": "definitions.event.unknown", "component": label, "event_name": event_name},
        )
        if diagnostics is not None:
            diagnostics.unknown_event(label, event_name, message)

    if not validate_handlers:
        return warnings
    for event_name in configured_events(component.event):
        source = resolve(component, f"event.{event_name}")
        if not isinstance(source, str):
            warnings.append(f"{label}: handler {event_name!r} is not source text")
            continue
        result = validate_handler_source(source)
        for message in result.messages:
            warnings.append(f"{label}: handler {event_name!r} {message}")
        if not result.ok:
            LOGGER.warning(
                "definitions.handler.invalid",
                extra={
                    "event": "definitions.handler.invalid",
                    "component": label,
                    "event_name": event_name,
                    "problems": result.messages,
                },
            )
    return warnings
