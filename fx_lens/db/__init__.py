"""Persistent key/value stores backing the rate cache."""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = ["DEFAULT_CACHE_DB_PATH", "default_cache_path", "RATES_KEY_PREFIX", "rates_key"]

# Rate tables live under ``rates_<BASE>`` so a store can be shared with other
# settings without key collisions.
RATES_KEY_PREFIX: Final = "rates_"

DEFAULT_CACHE_DB_PATH: Final[Path] = Path.home() / ".fx_lens" / "rate_cache.db"


def default_cache_path() -> Path:
    """Return the absolute path of the default on-disk SQLite cache."""

    return DEFAULT_CACHE_DB_PATH.expanduser().resolve()


def rates_key(base_currency: str) -> str:
    return f"{RATES_KEY_PREFIX}{base_currency.upper()}"
