from __future__ import annotations

import pytest

from conftest import make_resolver as _resolver
from fx_lens.conversion import apply_offset, describe, format_amount


def test_convert_uses_cached_rate() -> None:
    resolver = _resolver({"EUR": {"USD": 1.1}})

    result = resolver.convert(100, "EUR", "USD")

    assert result is not None
    assert result.target_amount == pytest.approx(110.0)
    assert format_amount(result.target_amount, 2) == "110.00"
    assert result.rate_used == 1.1
    assert (result.source_currency, result.target_currency) == ("EUR", "USD")


def test_identity_conversion_ignores_offset_and_cache() -> None:
    resolver = _resolver({})

    result = resolver.convert(12.345, "gbp", "GBP", offset_percent=5)

    assert result is not None
    assert result.target_amount == 12.345
    assert result.rate_used == 1.0


def test_offset_scales_the_rate() -> None:
    resolver = _resolver({"EUR": {"USD": 2.0}})

    result = resolver.convert(10, "EUR", "USD", offset_percent=2.5)

    assert result is not None
    assert result.rate_used == pytest.approx(2.05)
    assert result.target_amount == pytest.approx(20.5)


def test_missing_rate_or_table_returns_none() -> None:
    resolver = _resolver({"EUR": {"USD": 1.1}})

    assert resolver.convert(1, "EUR", "JPY") is None
    assert resolver.convert(1, "CHF", "USD") is None


def test_zero_offset_returns_the_rate_unchanged() -> None:
    assert apply_offset(1.2345, 0) == 1.2345
    assert apply_offset(100, -10) == pytest.approx(90)


@pytest.mark.parametrize(
    "value, places, expected",
    [(1234567.891, 2, "1,234,567.89"), (0.5, 0, "0"), (12, 3, "12.000")],
)
def test_format_amount(value: float, places: int, expected: str) -> None:
    assert format_amount(value, places) == expected


def test_describe_uses_target_symbol() -> None:
    resolver = _resolver({"USD": {"EUR": 0.5}})

    result = resolver.convert(1250.5, "USD", "EUR")

    assert result is not None
    assert describe(result, 2) == "€625.25"


def test_convert_batch() -> None:
    resolver = _resolver({"EUR": {"INR": 90.0}, "USD": {"INR": 83.0}, "GBP": {"INR": 105.0}})

    lines = resolver.convert_batch(
        ["€45.50", "1,200", "GBP 10", "", "no numbers here"],
        "INR",
        decimal_places=1,
    )

    assert [line.original for line in lines] == ["€45.50", "$1,200", "GBP10"]
    assert [line.result.source_currency for line in lines] == ["EUR", "USD", "GBP"]
    assert lines[0].label == "₹ 4,095.0"
    assert lines[1].result.target_amount == pytest.approx(99600.0)


def test_convert_batch_uses_default_currency_for_bare_amounts() -> None:
    resolver = _resolver({"EUR": {"USD": 1.1}})

    lines = resolver.convert_batch(["100"], "USD", default_currency="eur")

    assert len(lines) == 1
    assert lines[0].original == "€100"
    assert lines[0].result.target_amount == pytest.approx(110.0)
