"""In-memory unit store for tests and offline runs.

Implements UnitStoreProtocol without any network access. Saved patches are
applied to the stored records and also kept in ``saved_patches`` so tests
can assert on exactly what was sent.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from waymark.models.unit import LogicalUnit

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from waymark.models.unit import UnitId, UnitPatch


class MockUnitStore:
    """Mock implementation of UnitStoreProtocol.

    Records are held as plain dicts, the same shape the REST store returns,
    so every fetch hands out fresh ``LogicalUnit`` objects.
    """

    def __init__(self, records: Iterable[dict[str, Any]] = ()) -> None:
        self._records: dict[UnitId, dict[str, Any]] = {}
        self.saved_patches: list[UnitPatch] = []
        for record in records:
            self.add(record)

    def add(self, record: dict[str, Any]) -> None:
        """Insert or replace a record."""
        self._records[record["id"]] = dict(record)

    def get(self, unit_id: UnitId) -> dict[str, Any] | None:
        record = self._records.get(unit_id)
        return dict(record) if record is not None else None

    async def fetch_units(
        self, source_code: str, source_page_id: int
    ) -> list[LogicalUnit]:
        return [
            LogicalUnit.from_record(record)
            for record in self._records.values()
            if record.get("source_code") == source_code
            and record.get("source_page_id") == source_page_id
        ]

    async def fetch_anchor_units(
        self, source_code: str, anchor_ids: Sequence[str]
    ) -> list[LogicalUnit]:
        wanted = set(anchor_ids)
        return [
            LogicalUnit.from_record(record)
            for record in self._records.values()
            if record.get("source_code") == source_code
            and record.get("anchor_id") in wanted
        ]

    async def save_patches(self, patches: Sequence[UnitPatch]) -> None:
        for patch in patches:
            self.saved_patches.append(patch)
            record = self._records.get(patch.id)
            if record is not None:
                record.update(patch.to_record())
