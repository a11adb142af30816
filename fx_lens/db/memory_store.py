"""In-process cache store."""

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping

from fx_lens.db.base_store import CacheStore


class MemoryCacheStore(CacheStore):
    """Dictionary-backed store; values are deep-copied on the way in and out."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._entries: dict[str, Any] = copy.deepcopy(dict(initial or {}))

    def get(self, keys: Iterable[str] | None = None) -> dict[str, Any]:
        if keys is None:
            return copy.deepcopy(self._entries)
        return {key: copy.deepcopy(self._entries[key]) for key in keys if key in self._entries}

    def set(self, entries: Mapping[str, Any]) -> None:
        for key, value in entries.items():
            self._entries[key] = copy.deepcopy(value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["MemoryCacheStore"]
