"""Paint highlight spans into a page and strip them out again.

Resolved unit ranges are reduced to per-text-node intervals.  Overlapping
intervals within a text node are split into non-overlapping regions with an
event sweep, so every region carries the full set of units active over it.
The page is then re-serialised with each region's text wrapped in::

    <span class="rag-highlight unit-type-talk" data-unit-id="12,40">...</span>

Painting never mutates the parsed tree; ``strip_highlights`` is the inverse
and must run before offsets are computed on a painted page.
"""

from __future__ import annotations

import html as html_lib
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from selectolax.lexbor import LexborHTMLParser

from waymark.dom.offsets import resolve_range
from waymark.models.unit import AnchorRelative, UnitType
from waymark.render.anchors import resolve_anchor_segments

if TYPE_CHECKING:
    from collections.abc import Iterable

    from waymark.dom.document import PageDocument
    from waymark.dom.text_map import TextRange
    from waymark.models.unit import LogicalUnit

logger = logging.getLogger(__name__)

HIGHLIGHT_CLASS = "rag-highlight"

VOID_TAGS = frozenset(
    (
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    )
)

# Text inside these is emitted verbatim, never entity-escaped
RAW_TEXT_TAGS = frozenset(
    ("script", "style", "xmp", "iframe", "noembed", "noframes", "plaintext")
)

_QA_TYPES = frozenset((UnitType.CANONICAL_ANSWER,))
_RELATION_TYPES = frozenset((UnitType.LINK_SUBJECT, UnitType.LINK_OBJECT))


class HighlightMode(StrEnum):
    """Which unit types a view paints."""

    CREATE = "create"
    QA = "qa"
    RELATIONS = "relations"

    def includes(self, unit_type: UnitType) -> bool:
        if self is HighlightMode.QA:
            return unit_type in _QA_TYPES
        if self is HighlightMode.RELATIONS:
            return unit_type in _RELATION_TYPES
        return unit_type not in _QA_TYPES and unit_type not in _RELATION_TYPES


def resolve_unit_ranges(
    unit: LogicalUnit,
    doc: PageDocument,
    chrome_classes: frozenset[str] = frozenset(),
) -> list[TextRange]:
    """Return the ranges *unit* covers in *doc*; empty if it cannot render."""
    if unit.is_broken:
        return []
    address = unit.addressing
    if isinstance(address, AnchorRelative):
        return resolve_anchor_segments(doc, address, chrome_classes) or []
    rng = resolve_range(address.start, address.end, doc.text_map)
    return [rng] if rng is not None else []


# ---------------------------------------------------------------------------
# Region computation (event-sweep)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Region:
    start: int
    end: int
    active: tuple[int, ...]


def _compute_regions(intervals: list[tuple[int, int, int]]) -> list[_Region]:
    """Split ``(start, end, unit_index)`` intervals into constant regions.

    ``active`` lists unit indices in ascending order so the same overlap
    always produces the same attributes.
    """
    events: list[tuple[int, int, int]] = []
    for start, end, idx in intervals:
        events.append((start, 0, idx))
        events.append((end, 1, idx))
    # Starts sort before ends at the same position so adjacent units touch
    events.sort()

    active: set[int] = set()
    regions: list[_Region] = []
    prev_pos: int | None = None
    for pos, kind, idx in events:
        if prev_pos is not None and pos > prev_pos and active:
            regions.append(_Region(prev_pos, pos, tuple(sorted(active))))
        if kind == 0:
            active.add(idx)
        else:
            active.discard(idx)
        prev_pos = pos
    return regions


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


def _open_tag(node: Any) -> str:
    parts = [node.tag]
    for name, value in node.attributes.items():
        if value is None:
            parts.append(name)
        else:
            parts.append(f'{name}="{html_lib.escape(value, quote=True)}"')
    return "<" + " ".join(parts) + ">"


def _span_tag(units: list[LogicalUnit], active: tuple[int, ...]) -> str:
    types: list[str] = []
    ids: list[str] = []
    for idx in active:
        unit = units[idx]
        type_class = f"unit-type-{unit.unit_type}"
        if type_class not in types:
            types.append(type_class)
        ids.append(str(unit.id))
    classes = " ".join([HIGHLIGHT_CLASS, *types])
    unit_ids = html_lib.escape(",".join(ids), quote=True)
    return f'<span class="{classes}" data-unit-id="{unit_ids}">'


class _Painter:
    """Serialises a tree, wrapping highlighted text regions in spans."""

    def __init__(
        self,
        units: list[LogicalUnit],
        regions_by_node: dict[int, list[_Region]],
    ) -> None:
        self.units = units
        self.regions_by_node = regions_by_node
        self.out: list[str] = []

    def _text(self, node: Any, raw: bool) -> None:
        text = node.text_content or ""
        if raw:
            self.out.append(text)
            return
        regions = self.regions_by_node.get(node.mem_id)
        if not regions:
            self.out.append(html_lib.escape(text, quote=False))
            return
        cursor = 0
        for region in regions:
            self.out.append(html_lib.escape(text[cursor : region.start], quote=False))
            self.out.append(_span_tag(self.units, region.active))
            self.out.append(
                html_lib.escape(text[region.start : region.end], quote=False)
            )
            self.out.append("</span>")
            cursor = region.end
        self.out.append(html_lib.escape(text[cursor:], quote=False))

    def node(self, node: Any, raw: bool = False) -> None:
        tag = node.tag
        if tag == "-text":
            self._text(node, raw)
        elif tag in ("-comment", "-doctype"):
            self.out.append(node.html or "")
        elif tag == "-document":
            self.children(node, raw)
        else:
            self.out.append(_open_tag(node))
            if tag in VOID_TAGS:
                return
            self.children(node, raw or tag in RAW_TEXT_TAGS)
            self.out.append(f"</{tag}>")

    def children(self, node: Any, raw: bool) -> None:
        child = node.first_child
        while child is not None:
            self.node(child, raw)
            child = child.next


def paint_highlights(
    doc: PageDocument,
    units: Iterable[LogicalUnit],
    *,
    mode: HighlightMode = HighlightMode.CREATE,
    chrome_classes: frozenset[str] = frozenset(),
) -> str:
    """Return the page HTML with highlight spans for every renderable unit.

    Broken units and units whose type *mode* does not show are left out, as
    are units whose ranges no longer resolve.
    """
    painted: list[LogicalUnit] = []
    intervals: dict[int, list[tuple[int, int, int]]] = defaultdict(list)

    for unit in units:
        if unit.is_broken or not mode.includes(unit.unit_type):
            continue
        ranges = resolve_unit_ranges(unit, doc, chrome_classes)
        if not ranges:
            logger.debug("Unit %s has nothing to paint", unit.id)
            continue
        idx = len(painted)
        painted.append(unit)
        for rng in ranges:
            for info, local_start, local_end in rng.pieces():
                # Whitespace-only nodes between blocks stay unwrapped
                if not info.text.strip():
                    continue
                intervals[info.node_id].append((local_start, local_end, idx))

    regions_by_node = {
        node_id: _compute_regions(node_intervals)
        for node_id, node_intervals in intervals.items()
    }
    logger.debug(
        "Painting %d units across %d text nodes (mode=%s)",
        len(painted),
        len(regions_by_node),
        mode,
    )

    painter = _Painter(painted, regions_by_node)
    root = doc.tree.root
    document = root.parent if root is not None else None
    if document is not None and document.tag == "-document":
        painter.node(document)
    elif root is not None:
        painter.node(root)
    return "".join(painter.out)


def strip_highlights(html: str) -> str:
    """Remove painted highlight spans, keeping their text in place."""
    tree = LexborHTMLParser(html)
    spans = tree.css(f"span.{HIGHLIGHT_CLASS}")
    for span in spans:
        span.unwrap()
    if spans:
        logger.debug("Stripped %d highlight spans", len(spans))
    return tree.html or ""
