"""Command line interface for fx-lens."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from fx_lens import FxLens
from fx_lens.config import ExtensionSettings
from fx_lens.rates.cache import MAJOR_CURRENCIES
from fx_lens.utils.logger import get_logger

LOGGER = get_logger(__name__)

__all__ = ["build_parser", "parse_args", "main"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fx-lens", description=__doc__)
    parser.add_argument(
        "--db",
        dest="db_url",
        help="Cache DSN (sqlite:///path, postgresql://..., mongodb://..., memory://). "
        "Defaults to ~/.fx_lens/rate_cache.db",
    )
    parser.add_argument("--target", default="USD", help="Currency to convert into")
    parser.add_argument(
        "--base",
        default="USD",
        help="Currency assumed for amounts without a symbol or code",
    )
    parser.add_argument("--decimals", type=int, default=2, help="Decimal places to display")
    parser.add_argument(
        "--offset",
        type=float,
        default=0.0,
        help="Percentage applied to every rate (e.g. 2.5 for a card fee)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    annotate = subparsers.add_parser("annotate", help="Annotate prices in an HTML file")
    annotate.add_argument("path", help="HTML file to annotate, or '-' for stdin")
    annotate.add_argument("-o", "--output", help="Write the annotated HTML here instead of stdout")

    convert = subparsers.add_parser("convert", help="Convert amounts such as '€45.50' or '1,200'")
    convert.add_argument("lines", nargs="+", help="Amounts to convert, one per argument")

    update = subparsers.add_parser("update-rates", help="Refresh cached rates from the providers")
    update.add_argument(
        "currencies",
        nargs="*",
        default=list(MAJOR_CURRENCIES),
        help="Base currencies to refresh (defaults to the major currencies)",
    )

    subparsers.add_parser("cache-info", help="Show how many rate tables are cached")
    subparsers.add_parser("clear-cache", help="Remove every cached rate table")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _settings_from_args(args: argparse.Namespace) -> ExtensionSettings:
    return ExtensionSettings(
        target_currency=args.target,
        base_currency=args.base,
        decimal_places=args.decimals,
        rate_offset_percent=args.offset,
    )


def _read_html(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def run(args: argparse.Namespace) -> int:
    fx = FxLens(args.db_url, settings=_settings_from_args(args))
    try:
        if args.command == "annotate":
            annotated = fx.annotate_html(_read_html(args.path))
            if args.output:
                Path(args.output).write_text(annotated, encoding="utf-8")
                LOGGER.info("Annotated HTML written to %s", args.output)
            else:
                print(annotated)
            return 0

        if args.command == "convert":
            converted = fx.convert_batch(args.lines)
            for line in converted:
                print(f"{line.original} → {line.label}")
            if not converted:
                LOGGER.warning("No amounts could be converted")
                return 1
            return 0

        if args.command == "update-rates":
            outcomes = fx.update_rates(args.currencies)
            for outcome in outcomes:
                print(f"{outcome.currency}: {'ok' if outcome.success else 'failed'}")
            successful = sum(1 for outcome in outcomes if outcome.success)
            print(f"Updated {successful}/{len(outcomes)} currencies")
            return 0 if successful else 1

        if args.command == "cache-info":
            info = fx.cache_info()
            last_update = info.last_update.isoformat() if info.last_update else "never"
            print(f"Cached currencies: {info.cached_count}")
            print(f"Last update: {last_update}")
            return 0

        if args.command == "clear-cache":
            fx.clear_cache()
            print("Cache cleared")
            return 0
    finally:
        fx.close()
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    raise SystemExit(run(args))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
