"""Protocol defining the unit store interface.

Both HttpUnitStore and MockUnitStore implement this protocol,
allowing them to be used interchangeably.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from waymark.models.unit import LogicalUnit, UnitPatch


class UnitStoreProtocol(Protocol):
    """Protocol for unit stores.

    This defines the interface that both the REST backend client
    and the in-memory mock must implement.
    """

    async def fetch_units(
        self, source_code: str, source_page_id: int
    ) -> list[LogicalUnit]:
        """Fetch every unit stored for a flat-offset page.

        Args:
            source_code: Site code, e.g. ``"bw"``.
            source_page_id: MediaWiki article id of the page.

        Returns:
            The page's units, broken ones included.
        """
        ...

    async def fetch_anchor_units(
        self, source_code: str, anchor_ids: Sequence[str]
    ) -> list[LogicalUnit]:
        """Fetch units whose starting anchor is one of *anchor_ids*.

        Args:
            source_code: Site code, e.g. ``"lib"``.
            anchor_ids: Anchor ids present in the page.

        Returns:
            The matching units, in no particular order.
        """
        ...

    async def save_patches(self, patches: Sequence[UnitPatch]) -> None:
        """Persist partial updates produced by a verify/heal pass.

        Raises:
            StoreError: If the store cannot be reached or rejects the batch.
        """
        ...
