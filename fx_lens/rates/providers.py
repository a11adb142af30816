"""Public exchange-rate APIs queried by :class:`RateResolutionCache`.

Each provider knows how to build its URL for a base currency and how to turn a
decoded JSON payload into a rates mapping. Anything that goes wrong (network
error, HTTP error status, invalid JSON, a payload flagged as unsuccessful) is
reported as ``None`` so the cache can move on to the next provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Final, Mapping

import requests

from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)

DEFAULT_TIMEOUT: Final = 10.0
USER_AGENT: Final = "fx-lens-rates/1.0"


def _parse_er_api(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    if payload.get("result") != "success":
        return None
    return payload.get("rates") or None


def _parse_frankfurter(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    rates = payload.get("rates")
    if not rates:
        return None
    base = payload.get("base")
    # Frankfurter omits the base currency from its own rates.
    return {**rates, str(base): 1} if base else rates


def _parse_exchangerate_host(payload: Mapping[str, Any]) -> Mapping[str, Any] | None:
    if not payload.get("success"):
        return None
    return payload.get("rates") or None


@dataclass(frozen=True, slots=True)
class RateProvider:
    """A third-party rate source with its own URL and response contract."""

    name: str
    url_for: Callable[[str], str]
    parse: Callable[[Mapping[str, Any]], Mapping[str, Any] | None]

    def fetch(
        self,
        base_currency: str,
        *,
        session: requests.Session,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> Mapping[str, Any] | None:
        """Query the provider and return its rates, or ``None`` on any failure."""

        url = self.url_for(base_currency)
        LOGGER.debug("Fetching %s rates from %s", base_currency, self.name)
        try:
            response = session.get(url, timeout=timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, OSError) as exc:
            LOGGER.warning("%s failed for %s: %s", self.name, base_currency, exc)
            return None
        except ValueError as exc:
            LOGGER.warning("%s returned invalid JSON for %s: %s", self.name, base_currency, exc)
            return None
        if not isinstance(payload, Mapping):
            LOGGER.warning("%s returned an unexpected payload for %s", self.name, base_currency)
            return None
        try:
            rates = self.parse(payload)
        except (AttributeError, TypeError, ValueError) as exc:
            LOGGER.warning("%s returned malformed rates for %s: %s", self.name, base_currency, exc)
            return None
        if not isinstance(rates, Mapping) or not rates:
            LOGGER.warning("%s reported no usable data for %s", self.name, base_currency)
            return None
        return rates


EXCHANGE_RATE_API = RateProvider(
    name="ExchangeRate-API",
    url_for=lambda base: f"https://open.er-api.com/v6/latest/{base}",
    parse=_parse_er_api,
)
FRANKFURTER = RateProvider(
    name="Frankfurter",
    url_for=lambda base: f"https://api.frankfurter.app/latest?from={base}",
    parse=_parse_frankfurter,
)
EXCHANGERATE_HOST = RateProvider(
    name="ExchangeRate.host",
    url_for=lambda base: f"https://api.exchangerate.host/latest?base={base}",
    parse=_parse_exchangerate_host,
)

DEFAULT_PROVIDERS: Final[tuple[RateProvider, ...]] = (
    EXCHANGE_RATE_API,
    FRANKFURTER,
    EXCHANGERATE_HOST,
)


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    return session


__all__ = [
    "DEFAULT_PROVIDERS",
    "DEFAULT_TIMEOUT",
    "EXCHANGE_RATE_API",
    "EXCHANGERATE_HOST",
    "FRANKFURTER",
    "RateProvider",
    "build_session",
]
