"""Freshness, fallback and bulk refresh behaviour of the rate cache."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest
import requests

from conftest import FakeSession, er_api_payload
from fx_lens.config import ExtensionSettings
from fx_lens.db import rates_key
from fx_lens.db.memory_store import MemoryCacheStore
from fx_lens.rates.cache import AUTO_UPDATE_WINDOW, MANUAL_UPDATE_WINDOW, RateResolutionCache
from fx_lens.rates.models import RateTable

START = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _cache(session: FakeSession, **kwargs) -> tuple[RateResolutionCache, _Clock]:
    clock = _Clock()
    store = kwargs.pop("store", None)
    cache = RateResolutionCache(
        MemoryCacheStore() if store is None else store,
        session=session,  # type: ignore[arg-type]
        clock=clock,
        sleep=lambda _seconds: None,
        **kwargs,
    )
    return cache, clock


def test_fresh_table_is_served_without_network() -> None:
    session = FakeSession({"open.er-api.com": er_api_payload("EUR", {"USD": 1.1})})
    cache, clock = _cache(session)

    first = cache.resolve("EUR")
    clock.now = START + AUTO_UPDATE_WINDOW - timedelta(minutes=1)
    second = cache.resolve("eur")

    assert first is not None and second is not None
    assert second.rate_for("USD") == 1.1
    assert len(session.calls) == 1


def test_stale_table_is_refetched() -> None:
    session = FakeSession({"open.er-api.com": er_api_payload("EUR", {"USD": 1.1})})
    cache, clock = _cache(session)

    cache.resolve("EUR")
    clock.now = START + AUTO_UPDATE_WINDOW + timedelta(minutes=1)
    table = cache.resolve("EUR")

    assert table is not None
    assert table.fetched_at == clock.now
    assert len(session.calls) == 2


def test_manual_update_widens_the_freshness_window() -> None:
    session = FakeSession({"open.er-api.com": er_api_payload("EUR", {"USD": 1.1})})
    cache, clock = _cache(session)
    cache.apply_settings(ExtensionSettings(auto_update=False))

    cache.resolve("EUR")
    clock.now = START + timedelta(hours=5)
    cache.resolve("EUR")
    assert len(session.calls) == 1

    clock.now = START + MANUAL_UPDATE_WINDOW + timedelta(minutes=1)
    cache.resolve("EUR")
    assert len(session.calls) == 2


def test_force_refresh_skips_the_cache() -> None:
    session = FakeSession({"open.er-api.com": er_api_payload("EUR", {"USD": 1.1})})
    cache, _ = _cache(session)

    cache.resolve("EUR")
    cache.resolve("EUR", force_refresh=True)

    assert len(session.calls) == 2


@pytest.mark.parametrize(
    "first_provider",
    [{"result": "error"}, requests.ConnectionError("down")],
)
def test_falls_back_to_the_next_provider(first_provider: object) -> None:
    session = FakeSession(
        {
            "open.er-api.com": first_provider,
            "frankfurter": {"base": "EUR", "rates": {"USD": 1.2}},
        }
    )
    store = MemoryCacheStore()
    cache, _ = _cache(session, store=store)

    table = cache.resolve("EUR")

    assert table is not None
    assert table.rate_for("USD") == 1.2
    assert table.rate_for("EUR") == 1.0
    assert rates_key("EUR") in store.get()


@pytest.mark.parametrize(
    "routes",
    [
        {
            "open.er-api.com": {"result": "success", "rates": [1, 2]},
            "frankfurter": {"base": "EUR", "rates": {"USD": 1.2}},
        },
        {
            "frankfurter": {"base": "EUR", "rates": "oops"},
            "exchangerate.host": {"success": True, "rates": {"USD": 1.2}},
        },
    ],
)
def test_malformed_rates_fall_through_to_the_next_provider(routes: dict) -> None:
    cache, _ = _cache(FakeSession(routes))

    table = cache.resolve("EUR")

    assert table is not None
    assert table.rate_for("USD") == 1.2


def test_cached_entry_with_malformed_rates_is_refetched() -> None:
    entry = {"base_currency": "EUR", "rates": "broken", "fetched_at": START.isoformat()}
    store = MemoryCacheStore({rates_key("EUR"): entry})
    session = FakeSession({"open.er-api.com": er_api_payload("EUR", {"USD": 1.1})})
    cache, _ = _cache(session, store=store)

    table = cache.resolve("EUR")

    assert table is not None
    assert table.rate_for("USD") == 1.1


def test_all_providers_failing_returns_none_and_keeps_stale_entry() -> None:
    stale = RateTable("EUR", {"USD": 1.05}, fetched_at=START - timedelta(days=3))
    store = MemoryCacheStore({rates_key("EUR"): stale.to_payload()})
    cache, _ = _cache(FakeSession(), store=store)

    assert cache.resolve("EUR") is None
    assert store.get([rates_key("EUR")])[rates_key("EUR")] == stale.to_payload()


def test_non_numeric_rates_are_dropped() -> None:
    session = FakeSession(
        {"open.er-api.com": er_api_payload("EUR", {"USD": 1.1, "BAD": "x", "NEG": -1, "T": True})}
    )
    cache, _ = _cache(session)

    table = cache.resolve("EUR")

    assert table is not None
    assert set(table.rates) == {"EUR", "USD"}


def test_unreadable_cache_entry_is_treated_as_missing() -> None:
    store = MemoryCacheStore({rates_key("EUR"): {"rates": {"USD": 1.0}}})
    session = FakeSession({"open.er-api.com": er_api_payload("EUR", {"USD": 1.1})})
    cache, _ = _cache(session, store=store)

    table = cache.resolve("EUR")

    assert table is not None
    assert table.rate_for("USD") == 1.1


def test_store_failures_do_not_break_resolution() -> None:
    class _BrokenStore(MemoryCacheStore):
        def get(self, keys=None):
            raise RuntimeError("disk gone")

        def set(self, entries):
            raise RuntimeError("disk gone")

    session = FakeSession({"open.er-api.com": er_api_payload("EUR", {"USD": 1.1})})
    cache, _ = _cache(session, store=_BrokenStore())

    table = cache.resolve("EUR")

    assert table is not None
    assert table.rate_for("USD") == 1.1


def test_update_all_reports_each_currency_and_pauses() -> None:
    pauses: list[float] = []
    session = FakeSession({"latest/USD": er_api_payload("USD", {"EUR": 0.9})})
    cache = RateResolutionCache(
        MemoryCacheStore(),
        session=session,  # type: ignore[arg-type]
        clock=_Clock(),
        sleep=pauses.append,
    )

    outcomes = cache.update_all(["usd", "GBP"], pause_seconds=0.2)

    assert [(o.currency, o.success) for o in outcomes] == [("USD", True), ("GBP", False)]
    assert pauses == [0.2, 0.2]


def test_cache_info_and_clear() -> None:
    session = FakeSession(
        {
            "latest/USD": er_api_payload("USD", {"EUR": 0.9}),
            "latest/EUR": er_api_payload("EUR", {"USD": 1.1}),
        }
    )
    cache, clock = _cache(session)

    cache.resolve("USD")
    clock.now = START + timedelta(minutes=10)
    cache.resolve("EUR")
    info = cache.cache_info()

    assert info.cached_count == 2
    assert info.last_update == START + timedelta(minutes=10)

    cache.clear()
    assert cache.cache_info().cached_count == 0
    assert cache.cache_info().last_update is None


def test_concurrent_resolves_fetch_once() -> None:
    session = FakeSession({"open.er-api.com": er_api_payload("EUR", {"USD": 1.1})})
    cache, _ = _cache(session)
    barrier = threading.Barrier(4)

    def _worker() -> None:
        barrier.wait()
        cache.resolve("EUR")

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(session.calls) == 1
