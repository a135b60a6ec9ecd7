"""Patch queue for debounced, fire-and-forget unit persistence.

Verify/heal passes and manual repairs produce ``UnitPatch`` records.  They
are collected here and sent to the unit store in one batch after a quiet
period, so a burst of passes does not turn into a burst of requests.  The
in-memory units are already authoritative; a failed flush is logged and the
batch is dropped, never retried.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from waymark.models.unit import UnitId, UnitPatch
    from waymark.store.protocol import UnitStoreProtocol

logger = logging.getLogger(__name__)


def _merge(old: UnitPatch, new: UnitPatch) -> UnitPatch:
    """Fold *new* into *old*; fields *new* leaves unset keep their old value."""
    return dataclasses.replace(
        old,
        broken_index=new.broken_index,
        start_char_index=(
            new.start_char_index
            if new.start_char_index is not None
            else old.start_char_index
        ),
        end_char_index=(
            new.end_char_index if new.end_char_index is not None else old.end_char_index
        ),
        text_content=(
            new.text_content if new.text_content is not None else old.text_content
        ),
    )


class PatchQueue:
    """Collects unit patches and flushes them to a store after a debounce.

    Attributes:
        debounce_seconds: Delay before flushing; reset by every enqueue.
    """

    def __init__(
        self, store: UnitStoreProtocol, debounce_seconds: float = 2.0
    ) -> None:
        self.store = store
        self.debounce_seconds = debounce_seconds
        self._pending: dict[UnitId, UnitPatch] = {}
        self._flush_task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> list[UnitPatch]:
        """Patches waiting for the next flush, one per unit."""
        return list(self._pending.values())

    def enqueue(self, patches: Iterable[UnitPatch]) -> None:
        """Queue *patches* and (re)schedule a debounced flush.

        Outside a running event loop the patches are only queued; call
        ``flush_now()`` to send them.
        """
        added = 0
        for patch in patches:
            existing = self._pending.get(patch.id)
            self._pending[patch.id] = (
                patch if existing is None else _merge(existing, patch)
            )
            added += 1
        if not added:
            return
        logger.debug("Queued %d patches (%d pending)", added, len(self._pending))
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._schedule_flush()

    def _schedule_flush(self) -> None:
        """Schedule or reschedule the debounced flush."""
        self.cancel()

        async def debounced_flush() -> None:
            try:
                await asyncio.sleep(self.debounce_seconds)
            except asyncio.CancelledError:
                return  # Superseded by a newer enqueue
            # A flush in flight is never cancelled by later enqueues
            self._flush_task = None
            await self._flush()

        self._flush_task = asyncio.create_task(debounced_flush())

    def cancel(self) -> None:
        """Cancel the pending flush, if any, keeping queued patches."""
        task = self._flush_task
        self._flush_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _flush(self) -> None:
        """Send everything pending to the store in one batch."""
        if not self._pending:
            return
        batch = list(self._pending.values())
        self._pending.clear()

        try:
            await self.store.save_patches(batch)
            logger.info("Persisted %d unit patches", len(batch))
        except Exception:
            logger.exception("Failed to persist %d unit patches", len(batch))

    async def flush_now(self) -> None:
        """Flush immediately (e.g. before navigating away)."""
        self.cancel()
        await self._flush()
