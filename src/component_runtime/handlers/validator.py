"""Static checks applied to handler source before it is compiled."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field

FORBIDDEN_NAMES = frozenset(
    {
        "eval",
        "exec",
        "compile",
        "open",
        "__import__",
        "globals",
        "locals",
        "vars",
        "breakpoint",
        "input",
        "exit",
        "quit",
        "getattr",
        "setattr",
        "delattr",
    }
)


@dataclass(frozen=True)
class ValidationProblem:
    line: int
    message: str

    def __str__(self) -> str:
        return f"line {self.line}: {self.message}"


@dataclass
class ValidationResult:
    problems: list[ValidationProblem] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems

    @property
    def messages(self) -> list[str]:
        return [str(problem) for problem in self.problems]


class _HandlerChecker(ast.NodeVisitor):
    def __init__(self) -> None:
        self.problems: list[ValidationProblem] = []

    def _flag(self, node: ast.AST, message: str) -> None:
        self.problems.append(ValidationProblem(getattr(node, "lineno", 0), message))

    def visit_Import(self, node: ast.Import) -> None:
        self._flag(node, "imports are not allowed in handlers")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._flag(node, "imports are not allowed in handlers")

    def visit_Name(self, node: ast.Name) -> None:
        if node.id in FORBIDDEN_NAMES:
            self._flag(node, f"use of {node.id!r} is not allowed")
        elif node.id.startswith("__"):
            self._flag(node, f"dunder name {node.id!r} is not allowed")
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("__"):
            self._flag(node, f"dunder attribute {node.attr!r} is not allowed")
        self.generic_visit(node)

    def visit_Yield(self, node: ast.Yield) -> None:
        self._flag(node, "handlers cannot yield")

    def visit_YieldFrom(self, node: ast.YieldFrom) -> None:
        self._flag(node, "handlers cannot yield")

    def visit_Global(self, node: ast.Global) -> None:
        self._flag(node, "global statements are not allowed")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self._flag(node, "nonlocal statements are not allowed")


def parse_handler(source: str) -> ast.Module:
    """Parse handler source, accepting top-level ``await``."""
    return compile(
        source,
        "<handler>",
        "exec",
        flags=ast.PyCF_ONLY_AST | ast.PyCF_ALLOW_TOP_LEVEL_AWAIT,
        dont_inherit=True,
    )


def validate_handler_source(source: str) -> ValidationResult:
    """Check ``source`` for syntax errors and constructs handlers may not use.

    Blank source is valid: it stands for an unconfigured handler.
    """
    result = ValidationResult()
    if not source or not source.strip():
        return result
    try:
        tree = parse_handler(source)
    except SyntaxError as exc:
        result.problems.append(ValidationProblem(exc.lineno or 0, f"syntax error: {exc.msg}"))
        return result
    checker = _HandlerChecker()
    checker.visit(tree)
    result.problems.extend(checker.problems)
    return result
