"""Handler compilation, validation and execution."""

from .compiler import CompiledHandler, HandlerCompiler
from .kernel import ExecutionKernel, ExecutionOutcome
from .runtime_api import SAFE_BUILTINS, HandlerConsole, RuntimeApi
from .validator import FORBIDDEN_NAMES, ValidationResult, validate_handler_source

__all__ = [
    "FORBIDDEN_NAMES",
    "SAFE_BUILTINS",
    "CompiledHandler",
    "ExecutionKernel",
    "ExecutionOutcome",
    "HandlerCompiler",
    "HandlerConsole",
    "RuntimeApi",
    "ValidationResult",
    "validate_handler_source",
]
