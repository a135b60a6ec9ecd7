"""Anchor-relative resolution and highlight painting."""

from waymark.render.anchors import BLOCK_TAGS, resolve_anchor_segments
from waymark.render.highlight import (
    HIGHLIGHT_CLASS,
    HighlightMode,
    paint_highlights,
    resolve_unit_ranges,
    strip_highlights,
)

__all__ = [
    "BLOCK_TAGS",
    "HIGHLIGHT_CLASS",
    "HighlightMode",
    "paint_highlights",
    "resolve_anchor_segments",
    "resolve_unit_ranges",
    "strip_highlights",
]
