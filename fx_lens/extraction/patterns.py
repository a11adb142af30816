"""Regular-expression families used to recognise currency mentions.

Each family implements :class:`MentionPattern` and is scanned independently
over the whole input. The amount grammar is shared: either a leading group of
one to three digits followed by comma/whitespace separated thousands groups,
or a plain run of digits, with an optional dot and one to four decimals.
Amounts glued to further digits are rejected by construction.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Callable, Final, Protocol

from fx_lens.extraction.models import CurrencyMention, PatternKind

SYMBOL_MAP: Final[dict[str, str]] = {
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₹": "INR",
    "₽": "RUB",
    "₩": "KRW",
    "₺": "TRY",
    "C$": "CAD",
    "A$": "AUD",
    "HK$": "HKD",
    "S$": "SGD",
}

VALID_CURRENCIES: Final[frozenset[str]] = frozenset(
    {
        "USD", "EUR", "GBP", "JPY", "INR", "RUB", "KRW", "TRY",
        "CAD", "AUD", "HKD", "SGD", "CHF", "CNY", "SEK", "NZD",
        "MXN", "ZAR", "BRL", "NOK", "DKK", "PLN", "THB", "MYR",
    }
)

DEFAULT_SYMBOL_CURRENCY: Final = "USD"

# Display symbols used when rendering converted amounts.
CURRENCY_SYMBOLS: Final[dict[str, str]] = {code: symbol for symbol, code in SYMBOL_MAP.items()}

_GROUPED = r"[0-9]{1,3}(?:[,\s][0-9]{3})+"
AMOUNT_PATTERN: Final = rf"(?:{_GROUPED}|[0-9]+)(?:\.[0-9]{{1,4}})?(?!\.?[0-9])"
_NUMBER_START = r"(?<![0-9.,])"
_SYMBOL_GLYPHS = "€£¥₹₽₩₺$"
_TRAILING_GLYPHS = "€£¥₹₽₩₺"

SYMBOL_FIRST_RE = re.compile(
    rf"((?<![A-Za-z])(?:HK|C|A|S)\$|[{_SYMBOL_GLYPHS}])\s*({AMOUNT_PATTERN})"
)
SYMBOL_LAST_RE = re.compile(rf"{_NUMBER_START}({AMOUNT_PATTERN})\s*([{_TRAILING_GLYPHS}])")
CODE_FIRST_RE = re.compile(rf"\b([A-Z]{{3}})\s+({AMOUNT_PATTERN})")
CODE_LAST_RE = re.compile(rf"{_NUMBER_START}({AMOUNT_PATTERN})\s+([A-Z]{{3}})\b")
BARE_NUMBER_RE = re.compile(
    rf"{_NUMBER_START}((?:{_GROUPED}|[0-9]+)\.[0-9]{{2,4}})(?![0-9])"
)
LENIENT_NUMBER_RE = re.compile(rf"{_NUMBER_START}({AMOUNT_PATTERN})")


def parse_amount(raw: str) -> float | None:
    """Strip thousands separators and return a positive finite amount."""

    cleaned = re.sub(r"[,\s]", "", raw)
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def currency_symbol(code: str) -> str:
    """Return the display symbol for ``code``, or the code itself."""

    return CURRENCY_SYMBOLS.get(code, code)


def symbol_to_currency(symbol: str) -> str:
    return SYMBOL_MAP.get(symbol, DEFAULT_SYMBOL_CURRENCY)


def validate_code(code: str) -> str | None:
    return code if code in VALID_CURRENCIES else None


class MentionPattern(Protocol):
    """Contract shared by every notation family."""

    kind: PatternKind

    def find_all(self, text: str, base_currency: str | None = None) -> list[CurrencyMention]:
        ...  # pragma: no cover - protocol definition


@dataclass(frozen=True, slots=True)
class RegexMentionPattern:
    """A notation family backed by a single compiled regular expression.

    ``currency_group`` is ``None`` for bare numbers, whose currency comes from
    the caller-supplied base currency; without one the family yields nothing.
    """

    kind: PatternKind
    regex: re.Pattern[str]
    amount_group: int
    currency_group: int | None = None
    resolve_currency: Callable[[str], str | None] | None = None

    def find_all(self, text: str, base_currency: str | None = None) -> list[CurrencyMention]:
        if self.currency_group is None and base_currency is None:
            return []
        mentions: list[CurrencyMention] = []
        for match in self.regex.finditer(text):
            if self.currency_group is None:
                currency = base_currency
            else:
                token = match.group(self.currency_group)
                currency = self.resolve_currency(token) if self.resolve_currency else token
            if currency is None:
                continue
            amount = parse_amount(match.group(self.amount_group))
            if amount is None:
                continue
            mentions.append(
                CurrencyMention(
                    full_text=match.group(0),
                    amount=amount,
                    currency_code=currency,
                    start_offset=match.start(),
                    length=len(match.group(0)),
                    pattern_kind=self.kind,
                )
            )
        return mentions


SYMBOL_FIRST = RegexMentionPattern(
    PatternKind.SYMBOL_FIRST, SYMBOL_FIRST_RE, amount_group=2, currency_group=1,
    resolve_currency=symbol_to_currency,
)
SYMBOL_LAST = RegexMentionPattern(
    PatternKind.SYMBOL_LAST, SYMBOL_LAST_RE, amount_group=1, currency_group=2,
    resolve_currency=symbol_to_currency,
)
CODE_FIRST = RegexMentionPattern(
    PatternKind.CODE_FIRST, CODE_FIRST_RE, amount_group=2, currency_group=1,
    resolve_currency=validate_code,
)
CODE_LAST = RegexMentionPattern(
    PatternKind.CODE_LAST, CODE_LAST_RE, amount_group=1, currency_group=2,
    resolve_currency=validate_code,
)
BARE_NUMBER = RegexMentionPattern(PatternKind.BARE_NUMBER, BARE_NUMBER_RE, amount_group=1)
LENIENT_BARE_NUMBER = RegexMentionPattern(
    PatternKind.BARE_NUMBER, LENIENT_NUMBER_RE, amount_group=1
)

DEFAULT_PATTERNS: Final[tuple[MentionPattern, ...]] = (
    SYMBOL_FIRST,
    SYMBOL_LAST,
    CODE_FIRST,
    CODE_LAST,
    BARE_NUMBER,
)


__all__ = [
    "AMOUNT_PATTERN",
    "CURRENCY_SYMBOLS",
    "DEFAULT_PATTERNS",
    "LENIENT_BARE_NUMBER",
    "MentionPattern",
    "RegexMentionPattern",
    "SYMBOL_MAP",
    "VALID_CURRENCIES",
    "currency_symbol",
    "parse_amount",
    "symbol_to_currency",
    "validate_code",
]
