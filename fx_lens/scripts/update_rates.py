"""Refresh cached rates for the major currencies.

Intended for cron jobs and other periodic runners; equivalent to
``fx-lens [options] update-rates``. Only the global options
(``--db`` and friends) are accepted.
"""

from __future__ import annotations

import sys

from fx_lens.cli import main as cli_main


def main() -> None:
    cli_main([*sys.argv[1:], "update-rates"])


if __name__ == "__main__":  # pragma: no cover - thin wrapper
    main()
