"""Offset mapper: ranges to container offsets and back.

``compute_offsets`` is the write path (a user selection becomes a stored
``[start, end)`` pair), ``resolve_range`` the read path (stored offsets become
a range to paint).  Both go through the same ``TextMap`` so round-tripping
holds for as long as the container's text is unchanged.  Once the page
drifts, the healer is what restores the pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from waymark.dom.text_map import TextRange
from waymark.models.unit import FlatOffset

if TYPE_CHECKING:
    from waymark.dom.document import PageDocument
    from waymark.dom.text_map import TextMap
    from waymark.sites import PageMetadata

logger = logging.getLogger(__name__)


def compute_offsets(rng: TextRange, text_map: TextMap) -> FlatOffset | None:
    """Map *rng* to absolute offsets within the container of *text_map*.

    ``start`` is the length of the container text preceding the range start;
    ``end`` is ``start`` plus the length of the range text.

    Returns:
        The offsets, or None if the range does not start inside the container.
    """
    first = text_map.locate(rng.start_node.node)
    if first is None:
        return None
    start = first.char_start + rng.start_offset
    return FlatOffset(start=start, end=start + len(rng.text))


def resolve_range(start: int, end: int, text_map: TextMap) -> TextRange | None:
    """Return the range covering ``[start, end)`` of the container text.

    Walks text nodes in document order with a running character count.  The
    node containing ``start`` receives the range start; the node containing
    ``end`` receives the range end (an end on a node boundary binds to the
    earlier node).

    Returns:
        The range, or None when the offsets are negative or degenerate, the
        container text is shorter than ``end``, or no node is reached.
    """
    if start < 0 or end <= start:
        return None
    if len(text_map) < end:
        return None

    start_info = None
    end_info = None
    for info in text_map.nodes:
        if start_info is None and info.char_start <= start < info.char_end:
            start_info = info
        if start_info is not None and info.char_start < end <= info.char_end:
            end_info = info
            break

    if start_info is None or end_info is None:
        return None

    return TextRange(
        nodes=tuple(text_map.nodes[start_info.index : end_info.index + 1]),
        start_offset=start - start_info.char_start,
        end_offset=end - end_info.char_start,
    )


@dataclass(frozen=True)
class SelectionCapture:
    """A validated selection, ready to become a new unit."""

    text: str
    start: int
    end: int
    page: PageMetadata


def capture_selection(
    document: PageDocument,
    rng: TextRange,
    page: PageMetadata,
    *,
    min_length: int | None = None,
) -> SelectionCapture | None:
    """Validate a user selection and compute its stored offsets.

    Selections shorter than *min_length* (default: the document's
    ``min_selection_length``) after trimming, or lying outside
    the content container (sidebars, footers), are ignored.
    """
    if min_length is None:
        min_length = document.min_selection_length
    text = rng.text
    if len(text.strip()) < min_length:
        logger.debug("Selection too short (%d chars), ignoring", len(text.strip()))
        return None

    offsets = compute_offsets(rng, document.text_map)
    if offsets is None or document.text_map.locate(rng.end_node.node) is None:
        logger.debug("Selection outside content container, ignoring")
        return None

    return SelectionCapture(
        text=text,
        start=offsets.start,
        end=offsets.end,
        page=page,
    )
