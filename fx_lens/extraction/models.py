"""Data models produced by the mention extractor."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PatternKind(str, Enum):
    """Notation families recognised by the extractor, in priority order."""

    SYMBOL_FIRST = "symbol-first"
    SYMBOL_LAST = "symbol-last"
    CODE_FIRST = "code-first"
    CODE_LAST = "code-last"
    BARE_NUMBER = "bare-number"


@dataclass(frozen=True, slots=True)
class CurrencyMention:
    """A located monetary amount inside a piece of text."""

    full_text: str
    amount: float
    currency_code: str
    start_offset: int
    length: int
    pattern_kind: PatternKind

    @property
    def end_offset(self) -> int:
        """Offset just past the matched text."""

        return self.start_offset + self.length


__all__ = ["CurrencyMention", "PatternKind"]
