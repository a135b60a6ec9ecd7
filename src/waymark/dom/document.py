"""A parsed page and the content container its offsets are measured in."""

from __future__ import annotations

import logging
from typing import Any

from selectolax.lexbor import LexborHTMLParser

from waymark.dom.text_map import TextMap, build_text_map
from waymark.errors import ContainerNotFoundError

logger = logging.getLogger(__name__)


def _css_attr_value(value: str) -> str:
    """Escape *value* for use inside a double-quoted CSS attribute selector."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


class PageDocument:
    """An HTML page parsed with selectolax.

    The text map is built lazily from the content container and cached; the
    document is treated as immutable, so a changed page means a new
    ``PageDocument``.
    """

    def __init__(
        self,
        html: str,
        *,
        container_selector: str = "#mw-content-text",
        min_selection_length: int = 5,
    ) -> None:
        self.source_html = html
        self.container_selector = container_selector
        self.min_selection_length = min_selection_length
        self.tree = LexborHTMLParser(html)
        self._text_map: TextMap | None = None

    @property
    def container(self) -> Any:
        """The content container node.

        Raises:
            ContainerNotFoundError: If the selector matches nothing.
        """
        node = self.tree.css_first(self.container_selector)
        if node is None:
            msg = f"Content container {self.container_selector!r} not found in page"
            raise ContainerNotFoundError(msg)
        return node

    @property
    def text_map(self) -> TextMap:
        if self._text_map is None:
            self._text_map = build_text_map(self.container)
            logger.debug(
                "Built text map: %d text nodes, %d chars",
                len(self._text_map.nodes),
                len(self._text_map),
            )
        return self._text_map

    @property
    def text(self) -> str:
        """Flattened text of the content container."""
        return self.text_map.text

    @property
    def body(self) -> Any:
        body = self.tree.body
        return body if body is not None else self.tree.root

    def find_anchor(self, anchor_id: str) -> Any | None:
        """Return the element whose ``id`` is *anchor_id*, if present."""
        return self.tree.css_first(f'[id="{_css_attr_value(anchor_id)}"]')

    def anchor_ids(self, selector: str = "[id]") -> list[str]:
        """Return the ids of all elements matching *selector*, in page order."""
        ids: list[str] = []
        for node in self.tree.css(selector):
            anchor_id = node.attributes.get("id")
            if anchor_id:
                ids.append(anchor_id)
        return ids
