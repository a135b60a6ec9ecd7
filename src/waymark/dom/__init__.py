"""Parsed pages, text-node walks and the offset mapper."""

from waymark.dom.document import PageDocument
from waymark.dom.offsets import (
    SelectionCapture,
    capture_selection,
    compute_offsets,
    resolve_range,
)
from waymark.dom.text_map import (
    STRIP_TAGS,
    TextMap,
    TextNodeInfo,
    TextRange,
    build_text_map,
    iter_text_nodes,
)

__all__ = [
    "STRIP_TAGS",
    "PageDocument",
    "SelectionCapture",
    "TextMap",
    "TextNodeInfo",
    "TextRange",
    "build_text_map",
    "capture_selection",
    "compute_offsets",
    "iter_text_nodes",
    "resolve_range",
]
