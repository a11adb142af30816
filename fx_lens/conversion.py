"""Convert amounts between currencies using cached rate tables."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from fx_lens.extraction.patterns import SYMBOL_MAP, VALID_CURRENCIES, currency_symbol, parse_amount
from fx_lens.rates.cache import RateResolutionCache
from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)

_BATCH_LINE_RE = re.compile(r"([^\d]*?)\s*([0-9][0-9,]*(?:\.[0-9]+)?)")
_SYMBOLS_LONGEST_FIRST = sorted(SYMBOL_MAP, key=len, reverse=True)


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """Outcome of a successful conversion. The amount is never rounded."""

    source_amount: float
    source_currency: str
    target_amount: float
    target_currency: str
    rate_used: float


@dataclass(frozen=True, slots=True)
class BatchLine:
    """One converted line of a batch conversion."""

    original: str
    result: ConversionResult
    label: str


def apply_offset(rate: float, offset_percent: float) -> float:
    """Scale ``rate`` by ``offset_percent``; a zero offset returns ``rate`` itself."""

    if offset_percent == 0:
        return rate
    return rate * (1 + offset_percent / 100)


def format_amount(value: float, decimal_places: int = 2) -> str:
    """Format with comma thousands grouping and a fixed number of decimals."""

    return f"{value:,.{decimal_places}f}"


def describe(result: ConversionResult, decimal_places: int = 2) -> str:
    """Render the converted value as ``<symbol><amount>``."""

    return f"{currency_symbol(result.target_currency)}{format_amount(result.target_amount, decimal_places)}"


def _currency_from_prefix(prefix: str, default_currency: str = "USD") -> str:
    token = prefix.strip()
    if not token:
        return default_currency
    if token.upper() in VALID_CURRENCIES:
        return token.upper()
    for symbol in _SYMBOLS_LONGEST_FIRST:
        if symbol in token:
            return SYMBOL_MAP[symbol]
    return default_currency


class ConversionResolver:
    """Combine a rate cache with offset handling."""

    def __init__(self, cache: RateResolutionCache) -> None:
        self.cache = cache

    def convert(
        self,
        amount: float,
        from_currency: str,
        to_currency: str,
        offset_percent: float = 0.0,
    ) -> ConversionResult | None:
        """Convert ``amount`` or return ``None`` when no rate is available."""

        source = from_currency.upper()
        target = to_currency.upper()
        if source == target:
            return ConversionResult(
                source_amount=amount,
                source_currency=source,
                target_amount=amount,
                target_currency=target,
                rate_used=1.0,
            )
        table = self.cache.resolve(source)
        if table is None:
            LOGGER.debug("No rate table available for %s", source)
            return None
        base_rate = table.rate_for(target)
        if base_rate is None:
            LOGGER.debug("Rate table for %s has no %s entry", source, target)
            return None
        effective_rate = apply_offset(base_rate, offset_percent)
        return ConversionResult(
            source_amount=amount,
            source_currency=source,
            target_amount=amount * effective_rate,
            target_currency=target,
            rate_used=effective_rate,
        )

    def convert_batch(
        self,
        lines: Iterable[str],
        to_currency: str,
        *,
        offset_percent: float = 0.0,
        decimal_places: int = 2,
        default_currency: str = "USD",
    ) -> list[BatchLine]:
        """Convert free-form lines such as ``"€45.50"`` or ``"1,200"``.

        A missing or unknown symbol means ``default_currency``. Lines without a number or
        without an available rate are left out of the result.
        """

        converted: list[BatchLine] = []
        for line in lines:
            if not line.strip():
                continue
            match = _BATCH_LINE_RE.search(line)
            if not match:
                continue
            amount = parse_amount(match.group(2))
            if amount is None:
                continue
            default = default_currency.upper()
            prefix = match.group(1).strip()
            source = _currency_from_prefix(prefix, default)
            result = self.convert(amount, source, to_currency, offset_percent)
            if result is None:
                continue
            converted.append(
                BatchLine(
                    original=f"{prefix or currency_symbol(default)}{match.group(2)}",
                    result=result,
                    label=f"{currency_symbol(result.target_currency)} "
                    f"{format_amount(result.target_amount, decimal_places)}",
                )
            )
        return converted


__all__ = [
    "BatchLine",
    "ConversionResolver",
    "ConversionResult",
    "apply_offset",
    "describe",
    "format_amount",
]
