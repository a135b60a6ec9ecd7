"""Tests for the waymark command-line tools."""

from __future__ import annotations

import json
from io import StringIO
from typing import TYPE_CHECKING, Any

import pytest
from rich.console import Console

from waymark.cli import (
    _build_parser,
    _cmd_heal,
    _cmd_offsets,
    _cmd_paint,
    _cmd_resolve,
    main,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


def _capture_console() -> tuple[Console, StringIO]:
    """Create a Rich Console that writes to a StringIO buffer."""
    buf = StringIO()
    return Console(file=buf, width=120, force_terminal=False), buf


def _record(unit_id: int, text: str, start: int, **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": unit_id,
        "text_content": text,
        "start_char_index": start,
        "end_char_index": start + len(text),
        "unit_type": "talk",
        "broken_index": 0,
    }
    record.update(overrides)
    return record


@pytest.fixture
def page_file(tmp_path: Path, wiki_html: Callable[..., str]) -> Callable[[str], Path]:
    def _write(body: str) -> Path:
        path = tmp_path / "page.html"
        path.write_text(wiki_html(body), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def units_file(tmp_path: Path) -> Callable[[list[dict[str, Any]]], Path]:
    def _write(records: list[dict[str, Any]]) -> Path:
        path = tmp_path / "units.json"
        path.write_text(json.dumps(records), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("waymark._setup_logging", lambda: None)


class TestParser:
    """Argument parsing."""

    def test_paint_mode(self) -> None:
        args = _build_parser().parse_args(
            ["paint", "p.html", "u.json", "--mode", "qa"]
        )
        assert args.command == "paint"
        assert args.mode == "qa"

    def test_bad_mode_rejected(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["paint", "p.html", "u.json", "--mode", "x"])

    def test_global_selector(self) -> None:
        args = _build_parser().parse_args(
            ["--selector", "main", "resolve", "p.html", "0", "5"]
        )
        assert args.selector == "main"
        assert (args.start, args.end) == (0, 5)

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args([])


class TestCmdHeal:
    """waymark heal - verify/heal report."""

    @pytest.mark.asyncio
    async def test_reports_each_outcome(
        self,
        tmp_path: Path,
        page_file: Callable[[str], Path],
        units_file: Callable[[list[dict[str, Any]]], Path],
    ) -> None:
        page = page_file("<p>Inserted. Hello big world</p>")
        units = units_file(
            [
                _record(1, "big world", 6),
                _record(2, "vanished words", 0),
                _record(3, "Hello", 10),
            ]
        )
        output = tmp_path / "healed.json"
        con, buf = _capture_console()

        await _cmd_heal(page, units, output=output, console=con)

        text = buf.getvalue()
        assert "healed" in text
        assert "broken" in text
        assert "16-25" in text
        assert "2 renderable, 1 healed, 1 broken, 2 patches" in text
        records = {r["id"]: r for r in json.loads(output.read_text(encoding="utf-8"))}
        assert records[1]["start_char_index"] == 16
        assert records[2]["broken_index"] == 1
        assert records[3]["start_char_index"] == 10


class TestCmdResolve:
    """waymark resolve - offsets to text."""

    def test_prints_text(self, page_file: Callable[[str], Path]) -> None:
        con, buf = _capture_console()
        ok = _cmd_resolve(page_file("<p>Hello big world</p>"), 6, 15, console=con)
        assert ok
        assert buf.getvalue().strip() == "big world"

    def test_unresolvable_offsets(self, page_file: Callable[[str], Path]) -> None:
        con, buf = _capture_console()
        ok = _cmd_resolve(page_file("<p>Hello</p>"), 2, 50, console=con)
        assert not ok
        assert "does not resolve" in buf.getvalue()


class TestCmdOffsets:
    """waymark offsets - text to offsets."""

    def test_first_occurrence(self, page_file: Callable[[str], Path]) -> None:
        con, buf = _capture_console()
        ok = _cmd_offsets(page_file("<p>Hello big world</p>"), "big world", console=con)
        assert ok
        assert "start_char_index=6 end_char_index=15" in buf.getvalue()

    def test_later_occurrence(self, page_file: Callable[[str], Path]) -> None:
        con, buf = _capture_console()
        ok = _cmd_offsets(
            page_file("<p>ab cd ab cd</p>"), "ab cd", occurrence=2, console=con
        )
        assert ok
        assert "start_char_index=6 end_char_index=11" in buf.getvalue()

    def test_missing_text(self, page_file: Callable[[str], Path]) -> None:
        con, buf = _capture_console()
        assert not _cmd_offsets(page_file("<p>Hello</p>"), "absent", console=con)
        assert "not found" in buf.getvalue()

    def test_short_selection_rejected(self, page_file: Callable[[str], Path]) -> None:
        con, buf = _capture_console()
        assert not _cmd_offsets(page_file("<p>Hello</p>"), "He", console=con)
        assert "rejected" in buf.getvalue()


class TestCmdPaint:
    """waymark paint - highlighted page output."""

    def test_writes_painted_page(
        self,
        tmp_path: Path,
        page_file: Callable[[str], Path],
        units_file: Callable[[list[dict[str, Any]]], Path],
    ) -> None:
        page = page_file("<p>Question and answer</p>")
        units = units_file(
            [
                _record(1, "Question", 0),
                _record(2, "answer", 13, unit_type="canonical_answer"),
            ]
        )
        output = tmp_path / "painted.html"
        con, buf = _capture_console()

        _cmd_paint(page, units, mode="qa", output=output, console=con)

        painted = output.read_text(encoding="utf-8")
        assert 'data-unit-id="2"' in painted
        assert 'data-unit-id="1"' not in painted
        assert "Wrote" in buf.getvalue()


@pytest.mark.usefixtures("_quiet_logging")
class TestMain:
    """Dispatch and exit codes."""

    def test_paint_to_stdout(
        self,
        page_file: Callable[[str], Path],
        units_file: Callable[[list[dict[str, Any]]], Path],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        page = page_file("<p>Hello big world</p>")
        units = units_file([_record(1, "big", 6)])

        main(["paint", str(page), str(units)])

        assert 'data-unit-id="1">big</span>' in capsys.readouterr().out

    def test_missing_container_exits(self, page_file: Callable[[str], Path]) -> None:
        page = page_file("<p>Hello big world</p>")
        with pytest.raises(SystemExit) as exc_info:
            main(["--selector", "#nowhere", "resolve", str(page), "0", "5"])
        assert exc_info.value.code == 1

    def test_failed_command_exits(self, page_file: Callable[[str], Path]) -> None:
        page = page_file("<p>Hello</p>")
        with pytest.raises(SystemExit) as exc_info:
            main(["resolve", str(page), "0", "50"])
        assert exc_info.value.code == 1

    def test_bad_units_file_exits(
        self, tmp_path: Path, page_file: Callable[[str], Path]
    ) -> None:
        page = page_file("<p>Hello</p>")
        units = tmp_path / "units.json"
        units.write_text('"not a list"', encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main(["paint", str(page), str(units)])
        assert exc_info.value.code == 1
