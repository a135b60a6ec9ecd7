"""Page session: the unit cache and pass loop for one document view.

A ``PageSession`` is created when a page is opened and discarded on
navigation.  It owns everything that lives for exactly that long:

- the parsed document and its metadata,
- the unit cache, keyed by unit id,
- the set of anchor ids whose units have already been fetched,
- the patch queue that persists whatever a pass changed.

The cycle is fetch -> verify -> heal -> queue patches -> render.  Document
changes arrive through ``document_changed``; bursts are debounced and a newer
change supersedes a pending re-scan.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from waymark.config import get_settings
from waymark.dom.document import PageDocument
from waymark.healing.healer import heal_units
from waymark.healing.normalize import normalize
from waymark.healing.verify import verify_units
from waymark.models.unit import FlatOffset, Relocation, RepairRequest
from waymark.persistence import PatchQueue
from waymark.render.highlight import (
    HighlightMode,
    paint_highlights,
    resolve_unit_ranges,
    strip_highlights,
)
from waymark.sites import extract_page_metadata, get_site_config
from waymark.store.factory import get_unit_store

if TYPE_CHECKING:
    from collections.abc import Iterable

    from waymark.config import Settings
    from waymark.dom.text_map import TextRange
    from waymark.healing.healer import HealReport
    from waymark.healing.verify import VerificationReport
    from waymark.models.unit import LogicalUnit, UnitId, UnitPatch
    from waymark.sites import PageMetadata, SiteConfig
    from waymark.store.protocol import UnitStoreProtocol

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


@dataclass
class PassResult:
    """What one verify/heal pass did to the unit cache."""

    verification: VerificationReport
    heal: HealReport

    @property
    def renderable(self) -> list[LogicalUnit]:
        """Units that passed verification or were healed."""
        return [*self.verification.healthy, *self.heal.healed]

    @property
    def broken(self) -> list[LogicalUnit]:
        """Units that were already broken or just failed to heal."""
        return [*self.verification.broken, *(u for u, _ in self.heal.broken)]


def _preview(text: str) -> str:
    preview = normalize(text)
    if len(preview) > PREVIEW_LENGTH:
        return preview[:PREVIEW_LENGTH] + "..."
    return preview


def _log_rescan_failure(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Re-scan failed", exc_info=exc)


class PageSession:
    """Unit cache and pass loop for a single page view.

    Without an explicit *store*, the configured one from
    ``get_unit_store()`` is used.
    """

    def __init__(
        self,
        store: UnitStoreProtocol | None = None,
        *,
        settings: Settings | None = None,
        patch_queue: PatchQueue | None = None,
    ) -> None:
        settings = settings if settings is not None else get_settings()
        self.store = store if store is not None else get_unit_store()
        self.healing = settings.healing
        self.document_config = settings.document
        self.session_config = settings.session
        self.patches = (
            patch_queue
            if patch_queue is not None
            else PatchQueue(self.store, settings.session.persist_debounce_seconds)
        )

        self.units: dict[UnitId, LogicalUnit] = {}
        self.processed_anchor_ids: set[str] = set()
        self.document: PageDocument | None = None
        self.page: PageMetadata | None = None
        self.site: SiteConfig | None = None
        self.url: str | None = None
        self.mode = HighlightMode.CREATE
        self.last_result: PassResult | None = None
        self._rescan_task: asyncio.Task[None] | None = None
        self._container_override: str | None = None

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    @property
    def chrome_classes(self) -> frozenset[str]:
        return frozenset(self.document_config.chrome_classes)

    @property
    def anchor_mode(self) -> bool:
        """True when the page addresses units relative to anchors."""
        return self.site is not None and not self.site.is_mediawiki

    def attach(
        self,
        html: str,
        url: str | None = None,
        *,
        container_selector: str | None = None,
    ) -> PageDocument:
        """Parse *html* as the session's current document.

        Painted highlights are stripped first so offsets are always measured
        on clean text.  With a *url*, the site decides the content selector
        and page metadata is scraped; an explicit *container_selector* wins
        over both the site and the settings.
        """
        if container_selector is not None:
            self._container_override = container_selector
        if url is not None:
            self.url = url
            self.site = get_site_config(urlsplit(url).hostname or "")
            self.page = extract_page_metadata(html, url)

        if self._container_override is not None:
            selector = self._container_override
        elif self.site is not None:
            selector = self.site.content_selector
        else:
            selector = self.document_config.container_selector
        self.document = PageDocument(
            strip_highlights(html),
            container_selector=selector,
            min_selection_length=self.document_config.min_selection_length,
        )
        return self.document

    def _require_document(self) -> PageDocument:
        if self.document is None:
            msg = "No document attached; call attach() first"
            raise RuntimeError(msg)
        return self.document

    # ------------------------------------------------------------------
    # Unit cache
    # ------------------------------------------------------------------

    def merge_units(self, units: Iterable[LogicalUnit]) -> None:
        """Add *units* to the cache, replacing cached units with the same id."""
        count = 0
        for unit in units:
            self.units[unit.id] = unit
            count += 1
        logger.debug("Merged %d units (%d cached)", count, len(self.units))

    async def load(self) -> PassResult:
        """Fetch the page's units from the store and run a pass."""
        if self.anchor_mode:
            await self.load_anchors()
        else:
            if self.page is None:
                msg = "Page metadata unknown; attach() with a url first"
                raise RuntimeError(msg)
            units = await self.store.fetch_units(
                self.page.source_code, self.page.source_page_id
            )
            self.merge_units(units)
            logger.info(
                "Loaded %d units for %s:%d",
                len(units),
                self.page.source_code,
                self.page.source_page_id,
            )
        return self.run_pass()

    async def load_anchors(self) -> list[LogicalUnit]:
        """Fetch units for anchors that appeared since the last fetch."""
        doc = self._require_document()
        source_code = self.page.source_code if self.page is not None else ""
        new_ids = [
            anchor_id
            for anchor_id in doc.anchor_ids(self.document_config.anchor_selector)
            if anchor_id not in self.processed_anchor_ids
        ]
        if not new_ids:
            return []

        units = await self.store.fetch_anchor_units(source_code, new_ids)
        self.processed_anchor_ids.update(new_ids)
        self.merge_units(units)
        logger.info("Loaded %d units for %d new anchors", len(units), len(new_ids))
        return units

    # ------------------------------------------------------------------
    # Verify / heal
    # ------------------------------------------------------------------

    def run_pass(self) -> PassResult:
        """Verify every cached unit, heal the drifted ones, queue patches."""
        doc = self._require_document()
        verification = verify_units(self.units.values(), doc)
        # Anchor pages may have no flat container at all
        needs_text = any(
            isinstance(unit.addressing, FlatOffset)
            for unit, _ in verification.unhealthy
        )
        live_text = doc.text if needs_text else ""
        heal = heal_units(verification, live_text, self.healing)
        self.patches.enqueue(heal.patches)

        result = PassResult(verification=verification, heal=heal)
        self.last_result = result
        logger.info(
            "[HEAL] Pass complete: %d renderable, %d healed, %d broken",
            len(result.renderable),
            len(heal.healed),
            len(result.broken),
        )
        return result

    def repair_requests(self) -> list[RepairRequest]:
        """Units needing a manual repair, with a short text preview."""
        return [
            RepairRequest(id=unit.id, preview_text=_preview(unit.text_content))
            for unit in self.units.values()
            if unit.is_broken
        ]

    def apply_manual_repair(
        self, unit_id: UnitId, start: int, end: int, text: str
    ) -> UnitPatch:
        """Accept a user-supplied location for a unit, like a heal success.

        Raises:
            KeyError: If *unit_id* is not in the cache.
            ValueError: If the offsets are empty or reversed.
        """
        unit = self.units.get(unit_id)
        if unit is None:
            msg = f"Unit {unit_id!r} is not loaded in this session"
            raise KeyError(msg)
        if start < 0 or end <= start:
            msg = f"Invalid repair offsets [{start}, {end})"
            raise ValueError(msg)

        patch = unit.apply_relocation(Relocation(start=start, end=end, new_text=text))
        self.patches.enqueue([patch])
        logger.info("Unit %s manually repaired to [%d,%d)", unit_id, start, end)
        return patch

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def set_mode(self, mode: HighlightMode | str) -> None:
        self.mode = HighlightMode(mode)

    def render(self, mode: HighlightMode | None = None) -> str:
        """Return the current page with highlights for renderable units."""
        doc = self._require_document()
        return paint_highlights(
            doc,
            self.units.values(),
            mode=mode if mode is not None else self.mode,
            chrome_classes=self.chrome_classes,
        )

    async def focus_unit(self, unit_id: UnitId) -> TextRange | None:
        """Wait for *unit_id* to become resolvable and return its first range.

        Polls up to ``focus_retries`` times, ``focus_retry_delay`` seconds
        apart, since the unit or its text may only show up after a pending
        re-scan.
        """
        retries = self.session_config.focus_retries
        for attempt in range(retries):
            unit = self.units.get(unit_id)
            if unit is not None and self.document is not None:
                ranges = resolve_unit_ranges(unit, self.document, self.chrome_classes)
                if ranges:
                    return ranges[0]
            if attempt < retries - 1:
                await asyncio.sleep(self.session_config.focus_retry_delay)
        logger.warning("Unit %s not found after %d attempts", unit_id, retries)
        return None

    # ------------------------------------------------------------------
    # Document changes
    # ------------------------------------------------------------------

    def document_changed(self, html: str) -> asyncio.Task[None]:
        """Schedule a debounced re-scan of *html*, superseding any pending one."""
        self.cancel_rescan()

        async def debounced_rescan() -> None:
            try:
                await asyncio.sleep(self.session_config.mutation_debounce_seconds)
            except asyncio.CancelledError:
                return  # Superseded by a newer change
            await self._rescan(html)

        task = asyncio.create_task(debounced_rescan())
        task.add_done_callback(_log_rescan_failure)
        self._rescan_task = task
        return task

    async def _rescan(self, html: str) -> None:
        self.attach(html)
        if self.anchor_mode:
            await self.load_anchors()
        self.run_pass()

    def cancel_rescan(self) -> None:
        task = self._rescan_task
        self._rescan_task = None
        if task is not None and not task.done():
            task.cancel()

    async def close(self) -> None:
        """Drop pending work and flush queued patches."""
        self.cancel_rescan()
        await self.patches.flush_now()
