"""Key-value persistence backing for store atoms that opt into mirroring."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import PersistenceError, PersistenceFormatError

LOGGER = logging.getLogger(__name__)


class SetEntryRequest(BaseModel):
    """Payload written for one key."""

    model_config = ConfigDict(populate_by_name=True)

    value: Any = None
    scope: str = "application"
    is_secret: bool = Field(default=False, alias="isSecret")


class KvEntry(BaseModel):
    """Stored key-value record."""

    model_config = ConfigDict(populate_by_name=True)

    application_id: str = Field(alias="applicationId")
    key_path: str = Field(alias="keyPath")
    value: Any = None
    scope: str = "application"
    is_secret: bool = Field(default=False, alias="isSecret")
    version: int = 1
    updated_at: str = Field(default="", alias="updatedAt")


@runtime_checkable
class KeyValueStore(Protocol):
    """Two-operation contract consumed by persistent atoms."""

    def set_entry(
        self, application_id: str, key: str, request: SetEntryRequest
    ) -> KvEntry | None: ...

    def get_entry(self, application_id: str, key: str) -> KvEntry | None: ...


def _next_entry(
    previous: KvEntry | None, application_id: str, key: str, request: SetEntryRequest
) -> KvEntry:
    return KvEntry(
        application_id=application_id,
        key_path=key,
        value=request.value,
        scope=request.scope,
        is_secret=request.is_secret,
        version=(previous.version + 1) if previous is not None else 1,
        updated_at=datetime.now(UTC).isoformat(),
    )


class InMemoryKeyValueStore:
    """Process-local store, used for tests and when persistence is disabled."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], KvEntry] = {}

    def set_entry(
        self, application_id: str, key: str, request: SetEntryRequest
    ) -> KvEntry:
        entry = _next_entry(
            self._entries.get((application_id, key)), application_id, key, request
        )
        self._entries[(application_id, key)] = entry
        return entry

    def get_entry(self, application_id: str, key: str) -> KvEntry | None:
        return self._entries.get((application_id, key))

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileKeyValueStore:
    """Persist entries into a single private JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _ensure_paths(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.path.parent, 0o700)
        if not self.path.exists():
            self.path.write_text("{}", encoding="utf-8")
        self._enforce_permissions(self.path)

    @staticmethod
    def _row_key(application_id: str, key: str) -> str:
        return f"{application_id}::{key}"

    def _read_rows(self) -> dict[str, dict[str, Any]]:
        try:
            self._ensure_paths()
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise PersistenceError(f"Unable to read {self.path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise PersistenceFormatError(f"Key-value file {self.path} is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise PersistenceFormatError(f"Key-value file {self.path} must hold an object.")
        return {k: v for k, v in payload.items() if isinstance(v, dict)}

    def _write_rows(self, rows: dict[str, dict[str, Any]]) -> None:
        try:
            self.path.write_text(
                json.dumps(rows, ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Unable to write {self.path}: {exc}") from exc
        self._enforce_permissions(self.path)

    def get_entry(self, application_id: str, key: str) -> KvEntry | None:
        row = self._read_rows().get(self._row_key(application_id, key))
        if row is None:
            return None
        try:
            return KvEntry.model_validate(row)
        except ValidationError:
            LOGGER.warning(
                "kv.entry.invalid",
                extra={"event": "kv.entry.invalid", "application_id": application_id, "key": key},
            )
            return None

    def set_entry(
        self, application_id: str, key: str, request: SetEntryRequest
    ) -> KvEntry:
        rows = self._read_rows()
        row_key = self._row_key(application_id, key)
        previous: KvEntry | None = None
        if row_key in rows:
            try:
                previous = KvEntry.model_validate(rows[row_key])
            except ValidationError:
                previous = None
        entry = _next_entry(previous, application_id, key, request)
        rows[row_key] = entry.model_dump(by_alias=True)
        self._write_rows(rows)
        return entry
