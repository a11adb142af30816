"""Scan text for currency mentions using an ordered list of pattern families."""

from __future__ import annotations

from typing import Sequence

from fx_lens.extraction.models import CurrencyMention
from fx_lens.extraction.patterns import DEFAULT_PATTERNS, LENIENT_BARE_NUMBER, MentionPattern


class MentionExtractor:
    """Run every pattern family over a text and concatenate the results.

    Results are grouped by family in priority order (symbol-first, symbol-last,
    code-first, code-last, bare-number) rather than sorted by position, so the
    first element is always the highest-priority notation present.
    """

    def __init__(self, patterns: Sequence[MentionPattern] = DEFAULT_PATTERNS) -> None:
        self.patterns = tuple(patterns)

    def extract(self, text: str, base_currency: str | None = None) -> list[CurrencyMention]:
        """Return all mentions in ``text``.

        Bare numbers are only reported when ``base_currency`` is supplied; they
        carry that code since the text itself names no currency.
        """

        if not text:
            return []
        mentions: list[CurrencyMention] = []
        for pattern in self.patterns:
            mentions.extend(pattern.find_all(text, base_currency))
        return mentions

    def first_mention(
        self,
        text: str,
        base_currency: str | None = None,
        *,
        lenient: bool = False,
    ) -> CurrencyMention | None:
        """Return the highest-priority mention, or ``None``.

        ``lenient`` also accepts a bare number without decimals (``"42"``) as a
        last resort, which is what a user selecting a plain figure expects.
        """

        mentions = self.extract(text, base_currency)
        if mentions:
            return mentions[0]
        if lenient and base_currency is not None:
            fallback = LENIENT_BARE_NUMBER.find_all(text, base_currency)
            if fallback:
                return fallback[0]
        return None


__all__ = ["MentionExtractor"]
