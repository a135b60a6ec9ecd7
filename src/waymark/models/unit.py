"""Annotation records and the values derived from them.

``LogicalUnit`` is mutable on purpose: the verify/heal pass rewrites offsets,
text and the broken flag in place, and the in-memory copy is authoritative for
the current page view regardless of whether persistence succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class UnitType(StrEnum):
    """Semantic role of an annotation. Only used for render filtering."""

    TABLET = "tablet"
    PRAYER = "prayer"
    TALK = "talk"
    HISTORY = "history"
    CANONICAL_ANSWER = "canonical_answer"
    OTHER = "other"
    LINK_SUBJECT = "link_subject"
    LINK_OBJECT = "link_object"
    USER_HIGHLIGHT = "user_highlight"


UnitId = int | str


@dataclass(frozen=True)
class FlatOffset:
    """Offsets into the container's flattened text."""

    start: int
    end: int


@dataclass(frozen=True)
class AnchorRelative:
    """Offsets relative to a chain of anchor elements.

    Attributes:
        anchors: Anchor ids in document order. The first anchor's block
            starts at ``start_offset``, the last one's ends at ``end_offset``,
            anything in between is taken whole.
        start_offset: Characters after the first anchor where the span starts.
        end_offset: Characters after the last anchor where the span ends.
    """

    anchors: tuple[str, ...]
    start_offset: int
    end_offset: int


Addressing = FlatOffset | AnchorRelative


@dataclass(frozen=True)
class Relocation:
    """Where the healer found a drifted span."""

    start: int
    end: int
    new_text: str


@dataclass(frozen=True)
class RepairRequest:
    """A unit a human has to re-anchor by hand."""

    id: UnitId
    preview_text: str


@dataclass(frozen=True)
class UnitPatch:
    """Partial update sent to the unit store."""

    id: UnitId
    broken_index: int
    start_char_index: int | None = None
    end_char_index: int | None = None
    text_content: str | None = None

    def to_record(self) -> dict[str, Any]:
        """Serialise for the store, omitting fields that did not change."""
        record: dict[str, Any] = {"id": self.id, "broken_index": self.broken_index}
        if self.start_char_index is not None:
            record["start_char_index"] = self.start_char_index
        if self.end_char_index is not None:
            record["end_char_index"] = self.end_char_index
        if self.text_content is not None:
            record["text_content"] = self.text_content
        return record


def _coerce_unit_type(value: Any) -> UnitType:
    try:
        return UnitType(value)
    except ValueError:
        logger.warning("Unknown unit_type %r, treating as 'other'", value)
        return UnitType.OTHER


@dataclass
class LogicalUnit:
    """An annotation record.

    Attributes:
        id: Opaque identifier issued by the store.
        text_content: Text the span covered when last resolved.
        start_char_index: Start offset (flat or anchor-relative).
        end_char_index: End offset (flat or anchor-relative).
        unit_type: Semantic role, used for render filtering.
        anchor_id: Starting anchor for anchor-relative units, else None.
        connected_anchors: Further anchors the span continues into.
        broken_index: 0 healthy, 1 confirmed unresolvable, None unknown.
    """

    id: UnitId
    text_content: str
    start_char_index: int
    end_char_index: int
    unit_type: UnitType = UnitType.OTHER
    anchor_id: str | None = None
    connected_anchors: list[str] = field(default_factory=list)
    broken_index: int | None = 0
    article_id: int | None = None
    author: str = ""
    tags: list[int | str] = field(default_factory=list)
    source_code: str | None = None
    source_page_id: int | None = None
    title: str | None = None
    created_by: int | None = None

    @property
    def is_broken(self) -> bool:
        return bool(self.broken_index)

    @property
    def addressing(self) -> Addressing:
        """Return the addressing variant this unit uses."""
        if self.anchor_id is None:
            return FlatOffset(self.start_char_index, self.end_char_index)
        chain = [self.anchor_id]
        chain.extend(a for a in self.connected_anchors if a != self.anchor_id)
        return AnchorRelative(
            anchors=tuple(chain),
            start_offset=self.start_char_index,
            end_offset=self.end_char_index,
        )

    def apply_relocation(self, relocation: Relocation) -> UnitPatch:
        """Overwrite offsets and text with a successful heal, clear the flag."""
        self.start_char_index = relocation.start
        self.end_char_index = relocation.end
        self.text_content = relocation.new_text
        self.broken_index = 0
        return UnitPatch(
            id=self.id,
            broken_index=0,
            start_char_index=relocation.start,
            end_char_index=relocation.end,
            text_content=relocation.new_text,
        )

    def mark_broken(self) -> UnitPatch:
        """Flag the unit as unresolvable until a heal or manual repair."""
        self.broken_index = 1
        return UnitPatch(id=self.id, broken_index=1)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> LogicalUnit:
        """Build a unit from a store record, ignoring unknown keys."""
        anchor_id = record.get("anchor_id")
        return cls(
            id=record["id"],
            text_content=record.get("text_content") or "",
            start_char_index=int(record.get("start_char_index") or 0),
            end_char_index=int(record.get("end_char_index") or 0),
            unit_type=_coerce_unit_type(record.get("unit_type", UnitType.OTHER)),
            anchor_id=str(anchor_id) if anchor_id is not None else None,
            connected_anchors=[str(a) for a in record.get("connected_anchors") or []],
            broken_index=record.get("broken_index", 0),
            article_id=record.get("article_id"),
            author=record.get("author") or "",
            tags=list(record.get("tags") or []),
            source_code=record.get("source_code"),
            source_page_id=record.get("source_page_id"),
            title=record.get("title"),
            created_by=record.get("created_by"),
        )

    def to_record(self) -> dict[str, Any]:
        """Serialise back to the store's record shape."""
        record: dict[str, Any] = {
            "id": self.id,
            "text_content": self.text_content,
            "start_char_index": self.start_char_index,
            "end_char_index": self.end_char_index,
            "unit_type": str(self.unit_type),
            "broken_index": self.broken_index,
            "author": self.author,
            "tags": list(self.tags),
        }
        optional = {
            "anchor_id": self.anchor_id,
            "connected_anchors": list(self.connected_anchors) or None,
            "article_id": self.article_id,
            "source_code": self.source_code,
            "source_page_id": self.source_page_id,
            "title": self.title,
            "created_by": self.created_by,
        }
        record.update({k: v for k, v in optional.items() if v is not None})
        return record
