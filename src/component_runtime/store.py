"""Reactive store atoms with synchronous notification and write batching."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
import contextvars
import inspect
import logging
from typing import Any, Generic, TypeVar

from .events.bus import ListenerList, Subscription
from .persistence import KeyValueStore, SetEntryRequest
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

AtomCallback = Callable[[Any], None]


class _Batch:
    """Pending writes collected while a ``batch()`` block is open."""

    def __init__(self) -> None:
        self.pending: dict[Atom[Any], Any] = {}
        self.deferred: list[Callable[[], Any]] = []
        self.closed = False

    def commit(self) -> None:
        self.closed = True
        pending, self.pending = self.pending, {}
        for atom, value in pending.items():
            atom._commit(value)
        deferred, self.deferred = self.deferred, []
        for callback in deferred:
            callback()


_ACTIVE_BATCH: contextvars.ContextVar[_Batch | None] = contextvars.ContextVar(
    "component_runtime_batch", default=None
)


def _open_batch() -> _Batch | None:
    current = _ACTIVE_BATCH.get()
    if current is None or current.closed:
        return None
    return current


@contextmanager
def batch() -> Iterator[None]:
    """Buffer atom writes until the block exits.

    Reads inside the block observe the buffered values. On normal exit every
    buffered write is committed in first-write order and subscribers are
    notified; if the block raises, the buffered writes are discarded. Nested
    blocks join the outer batch and roll back only their own writes.
    """
    current = _open_batch()
    if current is not None:
        saved = dict(current.pending)
        saved_deferred = len(current.deferred)
        try:
            yield
        except BaseException:
            current.pending = saved
            del current.deferred[saved_deferred:]
            raise
        return

    pending = _Batch()
    token = _ACTIVE_BATCH.set(pending)
    try:
        yield
    except BaseException:
        pending.closed = True
        pending.pending.clear()
        pending.deferred.clear()
        raise
    finally:
        _ACTIVE_BATCH.reset(token)
    pending.commit()


def in_batch() -> bool:
    return _open_batch() is not None


def after_commit(callback: Callable[[], Any]) -> None:
    """Run ``callback`` once the open batch commits, or now if none is open.

    Callbacks registered inside a batch that is rolled back never run.
    """
    pending = _open_batch()
    if pending is None:
        callback()
        return
    pending.deferred.append(callback)


def detached_context() -> contextvars.Context:
    """Copy the current context without any open batch, for new tasks."""
    context = contextvars.copy_context()
    context.run(_ACTIVE_BATCH.set, None)
    return context


class Atom(Generic[T]):
    """Named, versioned cell holding one authoritative value.

    ``set`` is a total replacement; callers that want a field merge must
    spread the previous value themselves.
    """

    def __init__(self, name: str, default: T) -> None:
        self.name = name
        self._value: T = default
        self._version = 0
        self._listeners = ListenerList(name)
        self._disposed = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, version={self._version})"

    @property
    def version(self) -> int:
        return self._version

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def get(self) -> T:
        pending = _open_batch()
        if pending is not None and self in pending.pending:
            return pending.pending[self]
        return self._value

    def set(self, value: T) -> None:
        pending = _open_batch()
        if pending is not None:
            pending.pending[self] = value
            return
        self._commit(value)

    def _commit(self, value: T, *, mirror: bool = True) -> None:
        self._value = value
        self._version += 1
        if mirror:
            self._after_commit(value)
        if not self._disposed:
            self._listeners.notify(value)

    def _after_commit(self, value: T) -> None:
        """Hook for subclasses that mirror committed values elsewhere."""

    def listen(self, callback: AtomCallback) -> Subscription:
        """Call ``callback(value)`` after every committed change."""
        return self._listeners.add(callback)

    def subscribe(self, callback: AtomCallback) -> Subscription:
        """Like ``listen`` but also calls ``callback`` with the current value now."""
        subscription = self._listeners.add(callback)
        callback(self.get())
        return subscription

    def dispose(self) -> None:
        """Drop every listener. Later writes still succeed silently."""
        self._disposed = True
        self._listeners.clear()


class PersistentAtom(Atom[T]):
    """Atom that mirrors each committed value into a key-value store.

    A failed mirror write is logged and never rolls back the in-memory
    value, which stays authoritative for the running session.
    """

    def __init__(
        self,
        name: str,
        default: T,
        *,
        kv_store: KeyValueStore,
        key: str,
        application_id: str | Callable[[], str],
        scope: str = "application",
        is_secret: bool = False,
        tasks: TaskManager | None = None,
    ) -> None:
        super().__init__(name, default)
        self.key = key
        self.scope = scope
        self.is_secret = is_secret
        self._kv = kv_store
        self._application_id = application_id
        self._tasks = tasks
        self.last_persist_error: str | None = None
        self.on_persist_error: Callable[[str, str], None] | None = None

    @property
    def application_id(self) -> str:
        if callable(self._application_id):
            return str(self._application_id())
        return self._application_id

    def _after_commit(self, value: T) -> None:
        request = SetEntryRequest(value=value, scope=self.scope, is_secret=self.is_secret)
        try:
            result = self._kv.set_entry(self.application_id, self.key, request)
        except Exception as exc:  # noqa: BLE001 - persistence never blocks the in-memory write.
            self._persist_failed(exc)
            return
        if inspect.isawaitable(result):
            self._await_mirror(result)
            return
        self.last_persist_error = None

    def _await_mirror(self, awaitable: Any) -> None:
        async def _guarded() -> None:
            try:
                await awaitable
            except Exception as exc:  # noqa: BLE001
                self._persist_failed(exc)
            else:
                self.last_persist_error = None

        if self._tasks is None:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._persist_failed(RuntimeError("asynchronous key-value store needs a task manager"))
            return
        try:
            self._tasks.schedule(_guarded())
        except RuntimeError as exc:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            self._persist_failed(exc)

    def _persist_failed(self, exc: BaseException) -> None:
        self.last_persist_error = str(exc)
        LOGGER.warning(
            "store.persist.failed",
            extra={
                "event": "store.persist.failed",
                "atom": self.name,
                "key": self.key,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        if self.on_persist_error is not None:
            self.on_persist_error(self.name, str(exc))

    def load(self) -> bool:
        """Restore the value from the backing store without writing it back.

        Returns True when an entry was found.
        """
        try:
            entry = self._kv.get_entry(self.application_id, self.key)
        except Exception as exc:  # noqa: BLE001
            self._persist_failed(exc)
            return False
        if inspect.isawaitable(entry):
            if inspect.iscoroutine(entry):
                entry.close()
            LOGGER.warning(
                "store.load.unsupported",
                extra={"event": "store.load.unsupported", "atom": self.name},
            )
            return False
        if entry is None:
            return False
        self._commit(entry.value, mirror=False)
        return True
