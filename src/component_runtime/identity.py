"""Read-only identity boundary supplied by the session gateway."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field


class SessionUser(BaseModel):
    """Current user as reported by the session collaborator."""

    model_config = ConfigDict(extra="allow", frozen=True)

    uuid: str
    username: str = ""
    roles: list[str] = Field(default_factory=list)
    anonymous: bool = False

    def has_role(self, role: str) -> bool:
        return role in self.roles


UserProvider = Callable[[], SessionUser | None]


class FunctionInvoker(Protocol):
    """Remote function collaborator awaited by handler code."""

    async def invoke(self, name: str, payload: Any) -> Any: ...
