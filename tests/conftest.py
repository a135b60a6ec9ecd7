"""Shared pytest fixtures for waymark tests."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import pytest

from waymark.config import SessionConfig, Settings
from waymark.dom.document import PageDocument
from waymark.models.unit import LogicalUnit, UnitType
from waymark.store.factory import clear_store_cache

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


# =============================================================================
# Settings isolation
# =============================================================================

_SETTINGS_PREFIXES = (
    "HEALING__",
    "DOCUMENT__",
    "SESSION__",
    "STORE__",
    "APP__",
    "DEV__",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep developer env vars and cached settings out of every test."""
    for key in list(os.environ):
        if key.startswith(_SETTINGS_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    clear_store_cache()
    yield
    clear_store_cache()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short timings so async tests finish quickly."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        session=SessionConfig(
            mutation_debounce_seconds=0.01,
            persist_debounce_seconds=0.01,
            focus_retries=3,
            focus_retry_delay=0.01,
        ),
    )


# =============================================================================
# Pages and units
# =============================================================================


@pytest.fixture
def wiki_html() -> Callable[..., str]:
    """Factory for a MediaWiki-style page wrapping *body* in the content div.

    Bodies are written without whitespace between tags so the flattened
    text is exactly the visible text.
    """

    def _make(
        body: str,
        *,
        title: str = "Test Page - Bahaipedia",
        article_id: int | None = 42,
        sidebar: str = "",
    ) -> str:
        config = ""
        if article_id is not None:
            config = (
                "<script>RLCONF={"
                f'"wgArticleId":{article_id},"wgCurRevisionId":9001'
                "};</script>"
            )
        return (
            f"<!DOCTYPE html><html><head><title>{title}</title>{config}</head>"
            f'<body><div id="side">{sidebar}</div>'
            f'<div id="mw-content-text">{body}</div></body></html>'
        )

    return _make


@pytest.fixture
def library_html() -> Callable[[str], str]:
    """Factory for a library-reader page with anchor-addressed blocks."""

    def _make(body: str) -> str:
        return (
            "<html><head><title>Some Book - Bahai Reference Library</title></head>"
            f'<body><div class="library-document-content">{body}</div></body></html>'
        )

    return _make


@pytest.fixture
def make_document(wiki_html: Callable[..., str]) -> Callable[[str], PageDocument]:
    """Factory for a PageDocument over a wiki page with *body*."""

    def _make(body: str) -> PageDocument:
        return PageDocument(wiki_html(body))

    return _make


@pytest.fixture
def make_unit() -> Callable[..., LogicalUnit]:
    """Factory for LogicalUnit instances."""

    def _make(
        unit_id: int | str = 1,
        text: str = "",
        start: int = 0,
        end: int | None = None,
        *,
        unit_type: UnitType = UnitType.TALK,
        **kwargs: Any,
    ) -> LogicalUnit:
        return LogicalUnit(
            id=unit_id,
            text_content=text,
            start_char_index=start,
            end_char_index=start + len(text) if end is None else end,
            unit_type=unit_type,
            **kwargs,
        )

    return _make
