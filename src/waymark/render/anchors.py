"""Resolve anchor-relative units to text ranges.

Anchor-relative pages (library readers) address a span as "``n`` characters
after anchor X" instead of as an offset into one flat text.  Each anchor in a
unit's chain is resolved inside its own enclosing block:

- the scope is the nearest block-level element containing the anchor (the
  anchor itself if it is a block), or the body when there is none;
- counting starts where the anchor element ends, so neither the anchor's
  own text nor sibling content before it shifts the offsets (a block anchor
  is its own scope and its content is counted);
- text inside chrome elements (page numbers and the like) is skipped.

Anchors are stable ids, so nothing here heals.  A missing anchor means the
unit cannot be resolved at all.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from waymark.dom.offsets import resolve_range
from waymark.dom.text_map import STRIP_TAGS, has_class, map_text_nodes

if TYPE_CHECKING:
    from collections.abc import Iterator

    from waymark.dom.document import PageDocument
    from waymark.dom.text_map import TextRange
    from waymark.models.unit import AnchorRelative

logger = logging.getLogger(__name__)

BLOCK_TAGS = frozenset(
    (
        "p",
        "div",
        "li",
        "blockquote",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "td",
        "th",
        "section",
        "article",
        "dd",
        "dt",
        "pre",
    )
)


def _enclosing_block(anchor: Any, fallback: Any) -> Any:
    node = anchor
    while node is not None:
        if node.tag in BLOCK_TAGS:
            return node
        if node.tag == "body":
            break
        node = node.parent
    return fallback


def _scoped_text_nodes(
    scope: Any, anchor: Any, chrome_classes: frozenset[str]
) -> list[Any]:
    """Text nodes of *scope* after the end of *anchor*, minus chrome."""
    anchor_id = anchor.mem_id
    seen = scope.mem_id == anchor_id

    def walk(node: Any) -> Iterator[Any]:
        nonlocal seen
        child = node.first_child
        while child is not None:
            if child.mem_id == anchor_id:
                seen = True
                child = child.next
                continue
            tag = child.tag
            if tag == "-text":
                if seen and child.text_content:
                    yield child
            elif tag not in STRIP_TAGS and not has_class(child, chrome_classes):
                yield from walk(child)
            child = child.next

    return list(walk(scope))


def resolve_anchor_segments(
    doc: PageDocument,
    address: AnchorRelative,
    chrome_classes: frozenset[str] = frozenset(),
) -> list[TextRange] | None:
    """Resolve *address* to one text range per anchor block.

    The first anchor's segment starts at ``address.start_offset``, the last
    one's ends at ``address.end_offset`` and anchors in between are taken
    whole.  An end offset past the text in scope is capped at the end of the
    last text node; a segment that ends up empty is left out.

    Returns:
        The segments in chain order, or None if any anchor is missing.
    """
    segments: list[TextRange] = []
    last = len(address.anchors) - 1

    for i, anchor_id in enumerate(address.anchors):
        anchor = doc.find_anchor(anchor_id)
        if anchor is None:
            logger.debug("Anchor %r not in page", anchor_id)
            return None

        scope = _enclosing_block(anchor, doc.body)
        text_map = map_text_nodes(_scoped_text_nodes(scope, anchor, chrome_classes))
        total = len(text_map)

        start = address.start_offset if i == 0 else 0
        end = address.end_offset if i == last else total
        if end > total:
            logger.debug(
                "Anchor %r: end offset %d past scope end %d, capping",
                anchor_id,
                end,
                total,
            )
            end = total

        rng = resolve_range(start, end, text_map)
        if rng is None:
            logger.debug("Anchor %r: empty segment [%d,%d)", anchor_id, start, end)
            continue
        segments.append(rng)

    return segments
