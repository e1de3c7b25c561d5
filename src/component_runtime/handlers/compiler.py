"""Turn handler source text into cached, callable function code."""

from __future__ import annotations

import ast
from dataclasses import dataclass
import logging
from types import CodeType
from typing import Any

from ..exceptions import HandlerCompilationError, HandlerValidationError
from .validator import parse_handler, validate_handler_source

LOGGER = logging.getLogger(__name__)

HANDLER_NAME = "handler"
HANDLER_PARAMETERS = ("context", "component", "item")

_SYNC_TEMPLATE = f"def {HANDLER_NAME}({', '.join(HANDLER_PARAMETERS)}):\n    pass\n"
_ASYNC_TEMPLATE = f"async {_SYNC_TEMPLATE}"


@dataclass(frozen=True)
class CompiledHandler:
    source: str
    code: CodeType
    is_async: bool

    def bind(self, namespace: dict[str, Any]) -> Any:
        """Define the handler function inside ``namespace`` and return it."""
        exec(self.code, namespace)  # noqa: S102 - code comes from a validated AST.
        return namespace[HANDLER_NAME]


class _AsyncFinder(ast.NodeVisitor):
    """Find async constructs at the handler's own level, not in nested defs."""

    def __init__(self) -> None:
        self.found = False

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        return

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        return

    def visit_Lambda(self, node: ast.Lambda) -> None:
        return

    def visit_Await(self, node: ast.Await) -> None:
        self.found = True

    def visit_AsyncFor(self, node: ast.AsyncFor) -> None:
        self.found = True

    def visit_AsyncWith(self, node: ast.AsyncWith) -> None:
        self.found = True

    def visit_comprehension(self, node: ast.comprehension) -> None:
        if node.is_async:
            self.found = True
        self.generic_visit(node)


def needs_async(tree: ast.Module) -> bool:
    finder = _AsyncFinder()
    for statement in tree.body:
        finder.visit(statement)
    return finder.found


class HandlerCompiler:
    """Compile handler bodies into ``handler(context, component, item)``.

    Compiled code is cached by source text, so a handler fired repeatedly is
    parsed once.
    """

    def __init__(self, *, validate: bool = True) -> None:
        self.validate = validate
        self._cache: dict[str, CompiledHandler] = {}

    @property
    def size(self) -> int:
        return len(self._cache)

    def clear(self) -> None:
        self._cache.clear()

    def compile(self, source: str) -> CompiledHandler:
        cached = self._cache.get(source)
        if cached is not None:
            return cached

        if self.validate:
            result = validate_handler_source(source)
            if not result.ok:
                raise HandlerValidationError(
                    "Handler failed validation: " + "; ".join(result.messages),
                    result.messages,
                )
        try:
            tree = parse_handler(source)
        except SyntaxError as exc:
            raise HandlerCompilationError(
                f"Handler has a syntax error on line {exc.lineno}: {exc.msg}"
            ) from exc

        is_async = needs_async(tree)
        module = ast.parse(_ASYNC_TEMPLATE if is_async else _SYNC_TEMPLATE)
        function = module.body[0]
        if tree.body:
            function.body = tree.body
        ast.fix_missing_locations(module)
        try:
            code = compile(module, "<handler>", "exec", dont_inherit=True)
        except (SyntaxError, ValueError) as exc:
            raise HandlerCompilationError(f"Handler could not be compiled: {exc}") from exc

        compiled = CompiledHandler(source=source, code=code, is_async=is_async)
        self._cache[source] = compiled
        LOGGER.debug(
            "handler.compiled",
            extra={"event": "handler.compiled", "is_async": is_async, "cache_size": len(self._cache)},
        )
        return compiled
