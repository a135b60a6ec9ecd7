"""Command-line tools for checking annotations against saved pages.

Usage:
    waymark heal page.html units.json [--url URL] [--output healed.json]
    waymark resolve page.html START END
    waymark offsets page.html "selected text"
    waymark paint page.html units.json [--mode qa] [--output painted.html]

``units.json`` holds a list of unit records in the store's wire format.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console

from waymark.config import get_settings
from waymark.dom.document import PageDocument
from waymark.dom.offsets import capture_selection, resolve_range
from waymark.errors import ContainerNotFoundError
from waymark.models.unit import LogicalUnit
from waymark.render.highlight import HighlightMode
from waymark.session import PageSession
from waymark.sites import PageMetadata
from waymark.store.mock import MockUnitStore

if TYPE_CHECKING:
    from collections.abc import Sequence

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="waymark",
        description="Verify, heal and paint annotations on saved HTML pages.",
    )
    parser.add_argument(
        "--selector",
        default=None,
        help="CSS selector of the content container (default from settings)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # heal
    heal_p = sub.add_parser("heal", help="Verify units and relocate drifted ones")
    heal_p.add_argument("page", type=Path, help="Saved HTML page")
    heal_p.add_argument("units", type=Path, help="JSON list of unit records")
    heal_p.add_argument("--url", default=None, help="Page URL (selects the site)")
    heal_p.add_argument(
        "--output", type=Path, default=None, help="Write updated records here"
    )

    # resolve
    resolve_p = sub.add_parser("resolve", help="Show the text at [START, END)")
    resolve_p.add_argument("page", type=Path, help="Saved HTML page")
    resolve_p.add_argument("start", type=int, help="Start offset")
    resolve_p.add_argument("end", type=int, help="End offset")

    # offsets
    offsets_p = sub.add_parser("offsets", help="Compute offsets of a text selection")
    offsets_p.add_argument("page", type=Path, help="Saved HTML page")
    offsets_p.add_argument("text", help="Exact text as it appears in the page")
    offsets_p.add_argument(
        "--occurrence", type=int, default=1, help="Which match to use (default: 1)"
    )

    # paint
    paint_p = sub.add_parser("paint", help="Write the page with highlights added")
    paint_p.add_argument("page", type=Path, help="Saved HTML page")
    paint_p.add_argument("units", type=Path, help="JSON list of unit records")
    paint_p.add_argument(
        "--mode",
        choices=[m.value for m in HighlightMode],
        default=HighlightMode.CREATE.value,
        help="Which unit types to show (default: create)",
    )
    paint_p.add_argument("--url", default=None, help="Page URL (selects the site)")
    paint_p.add_argument(
        "--output", type=Path, default=None, help="Output file (default: stdout)"
    )

    return parser


def _load_records(path: Path) -> list[dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("units", [])
    if not isinstance(data, list):
        msg = f"{path}: expected a JSON list of unit records"
        raise ValueError(msg)
    return data


def _open_document(page: Path, selector: str | None) -> PageDocument:
    settings = get_settings()
    return PageDocument(
        page.read_text(encoding="utf-8"),
        container_selector=selector or settings.document.container_selector,
        min_selection_length=settings.document.min_selection_length,
    )


def _new_session(records: list[dict[str, Any]]) -> tuple[PageSession, MockUnitStore]:
    store = MockUnitStore(records)
    session = PageSession(store)
    session.merge_units(LogicalUnit.from_record(r) for r in records)
    return session, store


def _attach(
    session: PageSession, page: Path, url: str | None, selector: str | None
) -> None:
    session.attach(page.read_text(encoding="utf-8"), url, container_selector=selector)


async def _cmd_heal(
    page: Path,
    units_path: Path,
    *,
    url: str | None = None,
    selector: str | None = None,
    output: Path | None = None,
    console: Console | None = None,
) -> None:
    """Run one verify/heal pass and report every unit's outcome."""
    from rich.table import Table

    con = console or globals()["console"]
    records = _load_records(units_path)
    session, store = _new_session(records)
    _attach(session, page, url, selector)

    result = session.run_pass()
    await session.close()

    healed_ids = {u.id for u in result.heal.healed}
    table = Table(title=f"Units in {page.name}")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Offsets")

    for unit in session.units.values():
        if unit.is_broken:
            status = "[red]broken[/]"
        elif unit.id in healed_ids:
            status = "[yellow]healed[/]"
        else:
            status = "[green]ok[/]"
        table.add_row(
            str(unit.id),
            str(unit.unit_type),
            status,
            f"{unit.start_char_index}-{unit.end_char_index}",
        )
    con.print(table)
    con.print(
        f"{len(result.renderable)} renderable, {len(healed_ids)} healed, "
        f"{len(result.broken)} broken, {len(store.saved_patches)} patches"
    )

    if output is not None:
        payload = [unit.to_record() for unit in session.units.values()]
        output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        con.print(f"[green]Wrote[/] {output}")


def _cmd_resolve(
    page: Path,
    start: int,
    end: int,
    *,
    selector: str | None = None,
    console: Console | None = None,
) -> bool:
    """Print the container text at ``[start, end)``."""
    con = console or globals()["console"]
    doc = _open_document(page, selector)
    rng = resolve_range(start, end, doc.text_map)
    if rng is None:
        con.print(
            f"[red]Error:[/] [{start}, {end}) does not resolve "
            f"(container has {len(doc.text_map)} characters)"
        )
        return False
    con.print(rng.text, markup=False, highlight=False)
    return True


def _cmd_offsets(
    page: Path,
    text: str,
    *,
    occurrence: int = 1,
    selector: str | None = None,
    console: Console | None = None,
) -> bool:
    """Print the stored offsets a selection of *text* would get."""
    con = console or globals()["console"]
    doc = _open_document(page, selector)
    flat = doc.text

    pos = -1
    for _ in range(max(occurrence, 1)):
        pos = flat.find(text, pos + 1)
        if pos == -1:
            con.print(f"[red]Error:[/] text not found (occurrence {occurrence})")
            return False

    rng = resolve_range(pos, pos + len(text), doc.text_map)
    if rng is None:
        con.print("[red]Error:[/] selection does not map to the page")
        return False
    meta = PageMetadata(source_code="", source_page_id=0, title="", url=str(page))
    capture = capture_selection(doc, rng, meta)
    if capture is None:
        con.print(
            "[red]Error:[/] selection rejected (too short or outside container)"
        )
        return False
    con.print(f"start_char_index={capture.start} end_char_index={capture.end}")
    return True


def _cmd_paint(
    page: Path,
    units_path: Path,
    *,
    mode: str = HighlightMode.CREATE.value,
    url: str | None = None,
    selector: str | None = None,
    output: Path | None = None,
    console: Console | None = None,
) -> None:
    """Heal, then write the page with highlight spans."""
    con = console or globals()["console"]
    session, _store = _new_session(_load_records(units_path))
    _attach(session, page, url, selector)
    session.run_pass()
    painted = session.render(HighlightMode(mode))

    if output is None:
        sys.stdout.write(painted)
        return
    output.write_text(painted, encoding="utf-8")
    con.print(f"[green]Wrote[/] {output}")


def main(argv: Sequence[str] | None = None) -> None:
    """Verify, heal and paint annotations on saved HTML pages.

    Usage:
        waymark heal <page> <units.json> [--url URL] [--output FILE]
        waymark resolve <page> <start> <end>
        waymark offsets <page> <text> [--occurrence N]
        waymark paint <page> <units.json> [--mode MODE] [--output FILE]
    """
    from waymark import _setup_logging

    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging()

    ok = True
    try:
        match args.command:
            case "heal":
                asyncio.run(
                    _cmd_heal(
                        args.page,
                        args.units,
                        url=args.url,
                        selector=args.selector,
                        output=args.output,
                    )
                )
            case "resolve":
                ok = _cmd_resolve(
                    args.page, args.start, args.end, selector=args.selector
                )
            case "offsets":
                ok = _cmd_offsets(
                    args.page,
                    args.text,
                    occurrence=args.occurrence,
                    selector=args.selector,
                )
            case "paint":
                _cmd_paint(
                    args.page,
                    args.units,
                    mode=args.mode,
                    url=args.url,
                    selector=args.selector,
                    output=args.output,
                )
    except ContainerNotFoundError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    if not ok:
        sys.exit(1)
