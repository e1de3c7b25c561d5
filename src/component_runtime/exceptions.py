"""Domain exception hierarchy for the component runtime."""

from __future__ import annotations


class ComponentRuntimeError(RuntimeError):
    """Base class for all domain-level runtime errors."""


class ConfigValidationError(ComponentRuntimeError):
    """Raised when configuration cannot be validated safely."""


class DefinitionLoadError(ComponentRuntimeError):
    """Raised when a component definitions document cannot be read."""


class HandlerCompilationError(ComponentRuntimeError):
    """Raised when handler source cannot be turned into a callable."""


class HandlerValidationError(HandlerCompilationError):
    """Raised when handler source uses a forbidden construct."""

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        super().__init__(message)
        self.problems = list(problems or [])


class PersistenceError(ComponentRuntimeError):
    """Raised when key-value persistence operations fail."""


class PersistenceFormatError(PersistenceError):
    """Raised when a persisted payload cannot be decoded safely."""
