"""Store interface implemented by every cache backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping


class CacheStore(ABC):
    """Minimal key/value contract used to persist rate tables.

    Values are JSON-compatible mappings; backends decide how to serialise them.
    """

    @abstractmethod
    def get(self, keys: Iterable[str] | None = None) -> dict[str, Any]:
        """Return stored values for ``keys`` (all entries when ``None``).

        Missing keys are simply absent from the result.
        """

    @abstractmethod
    def set(self, entries: Mapping[str, Any]) -> None:
        """Insert or replace every entry in ``entries``."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every stored entry."""

    def ping(self) -> None:  # pragma: no cover - optional connectivity hook
        """Backends may override to verify connectivity; raise on failure."""

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Backends may override to release connections/resources."""


__all__ = ["CacheStore"]
