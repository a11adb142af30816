"""Recognise prices rendered as separate symbol/whole/fraction elements.

Shop front-ends frequently split a price such as ``$12.99`` across several
sibling elements (``<span class="a-price-symbol">$</span><span
class="a-price-whole">12</span><span class="a-price-fraction">99</span>``), so no
single text node carries the full amount. These helpers rebuild the amount
from the container with BeautifulSoup CSS selectors.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from bs4 import Tag

from fx_lens.document.live import has_class
from fx_lens.extraction.patterns import SYMBOL_MAP, parse_amount

PRICE_CONTAINER_SELECTOR = '[class*="price"], [class*="Price"]'
SYMBOL_SELECTOR = '[class*="symbol"], [class*="currency"]'
WHOLE_SELECTOR = '[class*="whole"]'
FRACTION_SELECTOR = '[class*="fraction"]'

_NUMBER_RE = re.compile(r"([0-9,]+(?:\.[0-9]+)?)")


@dataclass(slots=True)
class PriceBlock:
    """A price container and the amount reconstructed from its parts."""

    container: Tag
    amount: float
    currency_code: str


def _inside(element: Tag, class_name: str | None) -> bool:
    if class_name is None:
        return False
    if has_class(element, class_name):
        return True
    return any(has_class(parent, class_name) for parent in element.parents)


def _visible_text(container: Tag, skip_class: str | None) -> str:
    parts: list[str] = []
    for string in container.find_all(string=True):
        parent = string.parent
        if parent is not None and _inside(parent, skip_class):
            continue
        parts.append(str(string))
    return "".join(parts)


def find_price_containers(root: Tag) -> list[Tag]:
    """Return candidate price containers under ``root`` in document order."""

    return root.select(PRICE_CONTAINER_SELECTOR)


def _first_match(container: Tag, selector: str, skip_class: str | None) -> Tag | None:
    for element in container.select(selector):
        if not _inside(element, skip_class):
            return element
    return None


def parse_price_block(container: Tag, *, skip_class: str | None = None) -> PriceBlock | None:
    """Rebuild the price held by ``container``.

    ``skip_class`` names elements whose text must be ignored (the annotations
    this package inserts). Returns ``None`` when no known symbol element is
    present or the amount cannot be recovered.
    """

    symbol_el = _first_match(container, SYMBOL_SELECTOR, skip_class)
    if symbol_el is None:
        return None
    currency_code = SYMBOL_MAP.get(symbol_el.get_text().strip())
    if currency_code is None:
        return None

    whole_el = _first_match(container, WHOLE_SELECTOR, skip_class)
    amount: float | None = None
    if whole_el is not None:
        whole_text = whole_el.get_text().replace(",", "").strip().rstrip(".")
        fraction_el = _first_match(container, FRACTION_SELECTOR, skip_class)
        fraction_text = fraction_el.get_text().strip() if fraction_el is not None else "00"
        amount = parse_amount(f"{whole_text}.{fraction_text or '00'}")
    else:
        match = _NUMBER_RE.search(_visible_text(container, skip_class))
        if match:
            amount = parse_amount(match.group(1))
    if amount is None:
        return None
    return PriceBlock(container=container, amount=amount, currency_code=currency_code)


def iter_price_blocks(root: Tag, *, skip_class: str | None = None) -> Iterable[PriceBlock]:
    for container in find_price_containers(root):
        block = parse_price_block(container, skip_class=skip_class)
        if block is not None:
            yield block


__all__ = [
    "PriceBlock",
    "find_price_containers",
    "iter_price_blocks",
    "parse_price_block",
    "PRICE_CONTAINER_SELECTOR",
]
