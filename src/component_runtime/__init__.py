"""Top-level package for the component runtime."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import RuntimePreviewApp
    from .components import ComponentDefinition
    from .config import ensure_config_dir, load_config
    from .context import ClosureContext, EventInvocation, build_context
    from .diagnostics import DiagnosticKind, DiagnosticRecord, DiagnosticSink
    from .dispatcher import ComponentEventDispatcher, DispatchOutcome
    from .events.bus import EventBus
    from .exceptions import (
        ComponentRuntimeError,
        ConfigValidationError,
        DefinitionLoadError,
        HandlerCompilationError,
        HandlerValidationError,
        PersistenceError,
    )
    from .handlers import ExecutionKernel, ExecutionOutcome, HandlerCompiler
    from .loader import load_definitions
    from .resolver import resolve
    from .state import RuntimeStore, ViewMode
    from .store import Atom, PersistentAtom, batch

__all__ = [
    "Atom",
    "ClosureContext",
    "ComponentDefinition",
    "ComponentEventDispatcher",
    "ComponentRuntimeError",
    "ConfigValidationError",
    "DefinitionLoadError",
    "DiagnosticKind",
    "DiagnosticRecord",
    "DiagnosticSink",
    "DispatchOutcome",
    "EventBus",
    "EventInvocation",
    "ExecutionKernel",
    "ExecutionOutcome",
    "HandlerCompilationError",
    "HandlerCompiler",
    "HandlerValidationError",
    "PersistenceError",
    "PersistentAtom",
    "RuntimePreviewApp",
    "RuntimeStore",
    "ViewMode",
    "batch",
    "build_context",
    "ensure_config_dir",
    "load_config",
    "load_definitions",
    "resolve",
]

_EXPORTS: dict[str, str] = {
    "Atom": ".store",
    "PersistentAtom": ".store",
    "batch": ".store",
    "ClosureContext": ".context",
    "EventInvocation": ".context",
    "build_context": ".context",
    "ComponentDefinition": ".components",
    "ComponentEventDispatcher": ".dispatcher",
    "DispatchOutcome": ".dispatcher",
    "ComponentRuntimeError": ".exceptions",
    "ConfigValidationError": ".exceptions",
    "DefinitionLoadError": ".exceptions",
    "HandlerCompilationError": ".exceptions",
    "HandlerValidationError": ".exceptions",
    "PersistenceError": ".exceptions",
    "DiagnosticKind": ".diagnostics",
    "DiagnosticRecord": ".diagnostics",
    "DiagnosticSink": ".diagnostics",
    "EventBus": ".events.bus",
    "ExecutionKernel": ".handlers",
    "ExecutionOutcome": ".handlers",
    "HandlerCompiler": ".handlers",
    "RuntimeStore": ".state",
    "ViewMode": ".state",
    "ensure_config_dir": ".config",
    "load_config": ".config",
    "load_definitions": ".loader",
    "resolve": ".resolver",
    "RuntimePreviewApp": ".app",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so importing the package does not load Textual."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)
