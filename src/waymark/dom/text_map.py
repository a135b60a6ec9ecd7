"""Text-node walk and the flattened-text map built from it.

Walks a selectolax tree via ``first_child``/``next`` iteration (which exposes text
nodes) and records where each text node's characters fall in the flattened
text of the walk root.  The flattened text is the raw concatenation of text
node contents in document order, the same string a browser ``Range`` over the
container would stringify to.  No whitespace is collapsed here; tolerant
comparison is the normalizer's job.

Every offset computation in the package goes through ``iter_text_nodes`` so
the forward and inverse mappings always agree on traversal order.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

# Tags whose content is never page text
STRIP_TAGS = frozenset(("script", "style", "noscript", "template"))


def has_class(node: Any, classes: frozenset[str]) -> bool:
    """Return True if element *node* carries any of *classes*."""
    if not classes:
        return False
    class_attr = node.attributes.get("class")
    if not class_attr:
        return False
    return not classes.isdisjoint(class_attr.split())


def iter_text_nodes(
    root: Any,
    *,
    skip_classes: frozenset[str] = frozenset(),
) -> Iterator[Any]:
    """Yield non-empty text nodes below *root* in document order.

    Skips the content of ``STRIP_TAGS`` elements and of any element whose
    class list intersects *skip_classes*.  *root* itself is not tested
    against *skip_classes*.
    """
    child = root.first_child
    while child is not None:
        tag = child.tag
        if tag == "-text":
            if child.text_content:
                yield child
        elif tag not in STRIP_TAGS and not has_class(child, skip_classes):
            yield from iter_text_nodes(child, skip_classes=skip_classes)
        child = child.next


@dataclass(frozen=True)
class TextNodeInfo:
    """A text node's contribution to the flattened text.

    Attributes:
        node: The selectolax text node.
        index: Position of this node in the owning map's node list.
        text: Raw text content of the node.
        char_start: Offset of the node's first character in the flattened text.
        char_end: Offset one past the node's last character.
    """

    node: Any = field(compare=False, repr=False)
    index: int
    text: str
    char_start: int
    char_end: int

    @property
    def node_id(self) -> int:
        return self.node.mem_id


@dataclass(frozen=True)
class TextRange:
    """A run of text across one or more consecutive text nodes.

    The selectolax equivalent of a DOM ``Range`` whose boundaries sit in
    text nodes: ``start_offset`` indexes into the first node's text and
    ``end_offset`` into the last node's text.
    """

    nodes: tuple[TextNodeInfo, ...]
    start_offset: int
    end_offset: int

    @property
    def start_node(self) -> TextNodeInfo:
        return self.nodes[0]

    @property
    def end_node(self) -> TextNodeInfo:
        return self.nodes[-1]

    @property
    def text(self) -> str:
        if len(self.nodes) == 1:
            return self.nodes[0].text[self.start_offset : self.end_offset]
        middle = "".join(info.text for info in self.nodes[1:-1])
        return (
            self.nodes[0].text[self.start_offset :]
            + middle
            + self.nodes[-1].text[: self.end_offset]
        )

    def pieces(self) -> list[tuple[TextNodeInfo, int, int]]:
        """Return ``(node, local_start, local_end)`` for each covered node."""
        result: list[tuple[TextNodeInfo, int, int]] = []
        last = len(self.nodes) - 1
        for i, info in enumerate(self.nodes):
            start = self.start_offset if i == 0 else 0
            end = self.end_offset if i == last else len(info.text)
            if end > start:
                result.append((info, start, end))
        return result


class TextMap:
    """Flattened text of a subtree plus the node that owns each character."""

    def __init__(self, nodes: list[TextNodeInfo]) -> None:
        self.nodes = nodes
        self.text = "".join(info.text for info in nodes)
        self._by_node_id = {info.node_id: info for info in nodes}

    def __len__(self) -> int:
        return len(self.text)

    def locate(self, node: Any) -> TextNodeInfo | None:
        """Return the entry for *node*, or None if it is outside this map."""
        return self._by_node_id.get(node.mem_id)

    def range_between(
        self,
        start_node: Any,
        start_offset: int,
        end_node: Any,
        end_offset: int,
    ) -> TextRange | None:
        """Build a range from two text-node boundary points.

        Returns None if either node is outside this map, the offsets fall
        outside their nodes, or the end precedes the start.
        """
        first = self.locate(start_node)
        last = self.locate(end_node)
        if first is None or last is None:
            return None
        if not 0 <= start_offset <= len(first.text):
            return None
        if not 0 <= end_offset <= len(last.text):
            return None
        if first.char_start + start_offset > last.char_start + end_offset:
            return None
        return TextRange(
            nodes=tuple(self.nodes[first.index : last.index + 1]),
            start_offset=start_offset,
            end_offset=end_offset,
        )


def map_text_nodes(text_nodes: Iterable[Any]) -> TextMap:
    """Build a map over *text_nodes*, counting characters from zero."""
    nodes: list[TextNodeInfo] = []
    offset = 0
    for node in text_nodes:
        text = node.text_content
        nodes.append(
            TextNodeInfo(
                node=node,
                index=len(nodes),
                text=text,
                char_start=offset,
                char_end=offset + len(text),
            )
        )
        offset += len(text)
    return TextMap(nodes)


def build_text_map(
    root: Any,
    *,
    skip_classes: frozenset[str] = frozenset(),
) -> TextMap:
    """Walk *root* and record every text node's flattened-text span."""
    return map_text_nodes(iter_text_nodes(root, skip_classes=skip_classes))
