from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeSession, er_api_payload
from fx_lens import FxLens, cli
from fx_lens.scripts import update_rates as update_rates_script


@pytest.fixture(autouse=True)
def offline_fx(monkeypatch: pytest.MonkeyPatch) -> None:
    def _build(db_url, *, settings):
        session = FakeSession(
            {
                "latest/USD": er_api_payload("USD", {"EUR": 0.5}),
                "latest/GBP": er_api_payload("GBP", {"EUR": 1.2}),
            }
        )
        fx = FxLens(db_url or "memory://", settings=settings, session=session)
        monkeypatch.setattr(fx.cache, "_sleep", lambda _seconds: None)
        return fx

    monkeypatch.setattr(cli, "FxLens", _build)


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    return excinfo.value.code


def test_parse_args_defaults() -> None:
    args = cli.parse_args(["convert", "$5"])

    assert (args.target, args.base, args.decimals, args.offset) == ("USD", "USD", 2, 0.0)
    assert args.db_url is None
    assert args.lines == ["$5"]


def test_convert_command(capsys: pytest.CaptureFixture[str]) -> None:
    code = _run(["--target", "EUR", "--decimals", "1", "convert", "$10", "£2"])

    assert code == 0
    assert capsys.readouterr().out.splitlines() == ["$10 → € 5.0", "£2 → € 2.4"]


def test_convert_command_fails_when_nothing_converts(capsys: pytest.CaptureFixture[str]) -> None:
    assert _run(["--target", "EUR", "convert", "no amount"]) == 1
    assert capsys.readouterr().out == ""


def test_annotate_command(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    page = tmp_path / "page.html"
    page.write_text("<p>Only $8 left</p>", encoding="utf-8")
    output = tmp_path / "out.html"

    assert _run(["--target", "EUR", "annotate", str(page)]) == 0
    assert "(€4.00)</span> left" in capsys.readouterr().out

    assert _run(["--target", "EUR", "annotate", str(page), "-o", str(output)]) == 0
    assert "(€4.00)" in output.read_text(encoding="utf-8")


def test_update_rates_and_cache_commands(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db = f"sqlite:///{tmp_path / 'cache.db'}"

    assert _run(["--db", db, "update-rates", "USD", "GBP", "JPY"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["USD: ok", "GBP: ok", "JPY: failed", "Updated 2/3 currencies"]

    assert _run(["--db", db, "cache-info"]) == 0
    info = capsys.readouterr().out.splitlines()
    assert info[0] == "Cached currencies: 2"
    assert info[1].startswith("Last update: 20")

    assert _run(["--db", db, "clear-cache"]) == 0
    assert _run(["--db", db, "cache-info"]) == 0
    assert capsys.readouterr().out.splitlines()[-2:] == ["Cached currencies: 0", "Last update: never"]


def test_update_rates_script_forwards_global_options(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    db = f"sqlite:///{tmp_path / 'cache.db'}"
    monkeypatch.setattr("sys.argv", ["fx-lens-update-rates", "--db", db])

    with pytest.raises(SystemExit) as excinfo:
        update_rates_script.main()

    assert excinfo.value.code == 0
    assert "Updated 2/17 currencies" in capsys.readouterr().out
