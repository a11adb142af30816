"""Shared fakes for rate-provider HTTP traffic and pre-filled rate caches."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import requests

from fx_lens.conversion import ConversionResolver
from fx_lens.db import rates_key
from fx_lens.db.memory_store import MemoryCacheStore
from fx_lens.rates.cache import RateResolutionCache
from fx_lens.rates.models import RateTable

FIXED_NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _response(payload: Any, status_code: int = 200) -> SimpleNamespace:
    def _raise_for_status() -> None:
        if status_code >= 400:
            raise requests.HTTPError(f"{status_code} Server Error")

    def _json() -> Any:
        if isinstance(payload, Exception):
            raise payload
        return payload

    return SimpleNamespace(status_code=status_code, raise_for_status=_raise_for_status, json=_json)


class FakeSession:
    """Answer ``get`` calls from a ``{url_fragment: payload}`` routing table.

    A payload may be a ``requests`` exception (raised from ``get``), a
    ``(payload, status_code)`` tuple, or a plain JSON-like value. Unrouted
    URLs fail with a connection error.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, float | None]] = []

    def get(self, url: str, timeout: float | None = None) -> SimpleNamespace:
        self.calls.append((url, timeout))
        for fragment, payload in self.routes.items():
            if fragment in url:
                if isinstance(payload, requests.RequestException):
                    raise payload
                if isinstance(payload, tuple):
                    return _response(*payload)
                return _response(payload)
        raise requests.ConnectionError(f"no route for {url}")


def er_api_payload(base: str, rates: dict[str, float]) -> dict[str, Any]:
    return {"result": "success", "base_code": base, "rates": {base: 1, **rates}}


def make_resolver(tables: dict[str, dict[str, float]]) -> ConversionResolver:
    """Build a resolver whose cache already holds fresh ``tables``; no network."""

    store = MemoryCacheStore(
        {
            rates_key(base): RateTable(base, rates, fetched_at=FIXED_NOW).to_payload()
            for base, rates in tables.items()
        }
    )
    cache = RateResolutionCache(store, session=FakeSession(), clock=lambda: FIXED_NOW)  # type: ignore[arg-type]
    return ConversionResolver(cache)
