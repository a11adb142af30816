"""Rate resolution with a persistent cache and multi-provider fallback."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Final, Iterable, Sequence

import requests

from fx_lens.db import RATES_KEY_PREFIX, rates_key
from fx_lens.db.base_store import CacheStore
from fx_lens.db.memory_store import MemoryCacheStore
from fx_lens.rates.models import CacheInfo, RateTable, RefreshOutcome, clean_rates
from fx_lens.rates.providers import DEFAULT_PROVIDERS, DEFAULT_TIMEOUT, RateProvider, build_session
from fx_lens.utils.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported only for type checking
    from fx_lens.config import ExtensionSettings

LOGGER = get_logger(__name__)

AUTO_UPDATE_WINDOW: Final = timedelta(hours=1)
MANUAL_UPDATE_WINDOW: Final = timedelta(hours=24)
BULK_PAUSE_SECONDS: Final = 0.2

MAJOR_CURRENCIES: Final[tuple[str, ...]] = (
    "USD", "EUR", "GBP", "INR", "JPY", "AUD", "CAD", "CHF", "CNY",
    "SEK", "NZD", "SGD", "HKD", "KRW", "MXN", "BRL", "ZAR",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateResolutionCache:
    """Return rate tables per base currency, fetching only when needed.

    A fresh cached table is returned without touching the network. Otherwise
    providers are tried in order and the first usable answer replaces the
    cached entry. When every provider fails ``None`` is returned and any stale
    entry is left as it was.

    Access to one base currency is serialised with a lock so the
    check-fetch-write sequence cannot interleave when callers run ``resolve``
    from worker threads.
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        *,
        providers: Sequence[RateProvider] = DEFAULT_PROVIDERS,
        session: requests.Session | None = None,
        clock: Callable[[], datetime] = _utcnow,
        auto_update: bool = True,
        timeout: float | None = DEFAULT_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store if store is not None else MemoryCacheStore()
        self.providers = tuple(providers)
        self.session = session or build_session()
        self.clock = clock
        self.auto_update = auto_update
        self.timeout = timeout
        self._sleep = sleep
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def freshness_window(self) -> timedelta:
        return AUTO_UPDATE_WINDOW if self.auto_update else MANUAL_UPDATE_WINDOW

    def apply_settings(self, settings: "ExtensionSettings") -> None:
        self.auto_update = settings.auto_update

    def _lock_for(self, base_currency: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(base_currency, threading.Lock())

    def cached(self, base_currency: str) -> RateTable | None:
        """Return the persisted table for ``base_currency`` regardless of age."""

        key = rates_key(base_currency)
        try:
            payload = self.store.get([key]).get(key)
        except Exception as exc:  # store backends raise driver-specific errors
            LOGGER.error("Cache check failed for %s: %s", base_currency, exc)
            return None
        if not payload:
            return None
        try:
            return RateTable.from_payload(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable cache entry for %s: %s", base_currency, exc)
            return None

    def resolve(self, base_currency: str, force_refresh: bool = False) -> RateTable | None:
        """Return a usable rate table for ``base_currency`` or ``None``."""

        base = base_currency.upper()
        with self._lock_for(base):
            if not force_refresh:
                table = self.cached(base)
                if table is not None and table.is_fresh(self.clock(), self.freshness_window):
                    LOGGER.debug("Using cached rates for %s", base)
                    return table
            return self._fetch(base)

    def _fetch(self, base: str) -> RateTable | None:
        for provider in self.providers:
            raw_rates = provider.fetch(base, session=self.session, timeout=self.timeout)
            if raw_rates is None:
                continue
            rates = clean_rates(base, raw_rates)
            if not rates:
                LOGGER.warning("%s returned no numeric rates for %s", provider.name, base)
                continue
            table = RateTable(base_currency=base, rates=rates, fetched_at=self.clock())
            try:
                self.store.set({rates_key(base): table.to_payload()})
            except Exception as exc:  # store backends raise driver-specific errors
                LOGGER.error("Failed to persist %s rates: %s", base, exc)
            LOGGER.info("Fetched %s rates from %s", base, provider.name)
            return table
        LOGGER.error("All rate providers failed for %s", base)
        return None

    def update_all(
        self,
        currencies: Iterable[str] = MAJOR_CURRENCIES,
        *,
        force_refresh: bool = False,
        pause_seconds: float = BULK_PAUSE_SECONDS,
    ) -> list[RefreshOutcome]:
        """Refresh several base currencies, pausing between each one."""

        LOGGER.info("Updating rates for major currencies")
        outcomes: list[RefreshOutcome] = []
        for currency in currencies:
            table = self.resolve(currency, force_refresh=force_refresh)
            outcomes.append(RefreshOutcome(currency=currency.upper(), success=table is not None))
            if pause_seconds > 0:
                self._sleep(pause_seconds)
        successful = sum(1 for outcome in outcomes if outcome.success)
        LOGGER.info("Rate update complete: %s/%s successful", successful, len(outcomes))
        return outcomes

    def cache_info(self) -> CacheInfo:
        entries = self.store.get()
        info = CacheInfo()
        for key, payload in entries.items():
            if not key.startswith(RATES_KEY_PREFIX):
                continue
            try:
                table = RateTable.from_payload(payload)
            except (KeyError, TypeError, ValueError):
                continue
            info.cached_count += 1
            if info.last_update is None or table.fetched_at > info.last_update:
                info.last_update = table.fetched_at
        return info

    def clear(self) -> None:
        self.store.clear()


__all__ = [
    "AUTO_UPDATE_WINDOW",
    "MAJOR_CURRENCIES",
    "MANUAL_UPDATE_WINDOW",
    "RateResolutionCache",
]
