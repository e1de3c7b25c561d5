"""Dotted-path attribute resolution over loosely-typed component documents."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

_MISSING = object()


def _child(node: Any, key: str) -> Any:
    """Return ``node[key]`` or the missing sentinel when not indexable."""
    if isinstance(node, Mapping):
        return node.get(key, _MISSING)
    if isinstance(node, BaseModel):
        fields = type(node).model_fields
        if key in fields:
            return getattr(node, key)
        for name, info in fields.items():
            if info.alias == key:
                return getattr(node, name)
        extra = node.model_extra or {}
        return extra.get(key, _MISSING)
    return _MISSING


def _walk(root: Any, path: str) -> Any:
    if root is None or not path:
        return _MISSING
    node = root
    for key in path.split("."):
        if node is None:
            return _MISSING
        node = _child(node, key)
        if node is _MISSING:
            return _MISSING
    return node


def resolve(root: Any, path: str) -> Any:
    """Walk ``path`` key by key and return the value found, or ``None``.

    Missing keys, non-indexable intermediate values and an absent ``root``
    all resolve to ``None``. Sequences are not indexed.
    """
    node = _walk(root, path)
    return None if node is _MISSING else node


def has_path(root: Any, path: str) -> bool:
    """Return True when ``path`` exists, even if the value stored there is ``None``."""
    return _walk(root, path) is not _MISSING
