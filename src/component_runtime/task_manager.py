"""Structured lifecycle manager for fire-and-forget handler tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import contextvars
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Manage named and anonymous background asyncio tasks.

    Completion of a scheduled handler is never awaited by the dispatcher;
    tests and teardown paths use ``await_all`` or ``cancel_all``.
    """

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}
        self._anonymous: set[asyncio.Task[Any]] = set()

    def schedule(
        self,
        coro: Coroutine[Any, Any, Any],
        name: str | None = None,
        *,
        context: contextvars.Context | None = None,
    ) -> asyncio.Task[Any]:
        """Wrap ``coro`` in a task on the running loop and track it.

        Raises ``RuntimeError`` (after closing ``coro``) when no loop runs.
        Scheduling under an existing name cancels the previous task.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro, context=context)
        if name is not None:
            previous = self._named.get(name)
            if previous is not None and not previous.done():
                previous.cancel()
        self.add(task, name=name)
        return task

    def add(self, task: asyncio.Task[Any], name: str | None = None) -> None:
        """Register a task, optionally under a unique name.

        Named tasks replace any prior task with the same name and drop out of
        tracking when they finish. Anonymous tasks self-clean when they
        complete.
        """
        if name is not None:
            self._named[name] = task
            task.add_done_callback(lambda done, key=name: self._forget_named(key, done))
        else:
            self._anonymous.add(task)
            task.add_done_callback(self._anonymous.discard)
        task.add_done_callback(self._log_exception)

    def _forget_named(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._named.get(name) is task:
            del self._named[name]

    def _log_exception(self, task: asyncio.Task[Any]) -> None:
        """Log unhandled exceptions so they are not silently lost."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.exception",
                extra={
                    "event": "task.exception",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the named task or ``None`` if not registered."""
        return self._named.get(name)

    def is_pending(self, name: str) -> bool:
        task = self._named.get(name)
        return task is not None and not task.done()

    @property
    def pending_count(self) -> int:
        named = sum(1 for t in self._named.values() if not t.done())
        return named + sum(1 for t in self._anonymous if not t.done())

    async def cancel(self, name: str) -> None:
        """Cancel a named task and await its completion."""
        task = self._named.pop(name, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def cancel_all(self) -> None:
        """Cancel every tracked task and await them all."""
        all_tasks: list[asyncio.Task[Any]] = list(self._named.values()) + [
            t for t in self._anonymous if not t.done()
        ]
        for task in all_tasks:
            if not task.done():
                task.cancel()
        for task in all_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # noqa: BLE001 - already logged by _log_exception.
                pass
        self._named.clear()
        self._anonymous.clear()

    async def await_all(self) -> None:
        """Await all tracked tasks without cancelling them."""
        while True:
            pending = [
                t
                for t in list(self._named.values()) + list(self._anonymous)
                if not t.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)
