"""Data models shared by the rate providers and the rate cache."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping


def clean_rates(base_currency: str, rates: Mapping[str, Any]) -> dict[str, float]:
    """Keep positive finite numeric rates and pin the base currency to 1."""

    cleaned: dict[str, float] = {}
    if not isinstance(rates, Mapping):
        return cleaned
    for code, value in rates.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        rate = float(value)
        if not math.isfinite(rate) or rate <= 0:
            continue
        cleaned[str(code).upper()] = rate
    if base_currency in cleaned:
        cleaned[base_currency] = 1.0
    return cleaned


@dataclass(frozen=True, slots=True)
class RateTable:
    """Snapshot of exchange rates for one base currency."""

    base_currency: str
    rates: Mapping[str, float] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def rate_for(self, currency: str) -> float | None:
        return self.rates.get(currency)

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at

    def is_fresh(self, now: datetime, window: timedelta) -> bool:
        """Return True while the table is younger than ``window``."""

        return self.age(now) < window

    def to_payload(self) -> dict[str, Any]:
        return {
            "base_currency": self.base_currency,
            "rates": dict(self.rates),
            "fetched_at": self.fetched_at.isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RateTable":
        """Rebuild a table persisted with :meth:`to_payload`.

        Raises ``ValueError``, ``KeyError`` or ``TypeError`` for corrupt payloads so callers can
        treat them as a cache miss.
        """

        fetched_at = datetime.fromisoformat(str(payload["fetched_at"]))
        if fetched_at.tzinfo is None:
            fetched_at = fetched_at.replace(tzinfo=timezone.utc)
        base = str(payload["base_currency"]).upper()
        rates = payload.get("rates") or {}
        if not isinstance(rates, Mapping):
            raise TypeError(f"cached rates for {base} are not a mapping")
        return cls(
            base_currency=base,
            rates=clean_rates(base, rates),
            fetched_at=fetched_at,
        )


@dataclass(slots=True)
class RefreshOutcome:
    """Result of refreshing one base currency during a bulk update."""

    currency: str
    success: bool


@dataclass(slots=True)
class CacheInfo:
    """Summary of the persisted rate tables."""

    cached_count: int = 0
    last_update: datetime | None = None


__all__ = ["CacheInfo", "RateTable", "RefreshOutcome", "clean_rates"]
