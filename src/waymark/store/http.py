"""httpx client for the REST unit store.

Endpoints:
    ``GET  /api/units?source_code=&source_page_id=``
    ``GET  /api/units/by-anchor?source_code=&anchor_ids=a,b``
    ``POST /api/units/batch-update`` with ``{"updates": [...]}``

Every transport or HTTP status failure surfaces as ``StoreError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from waymark.errors import StoreError
from waymark.models.unit import LogicalUnit

if TYPE_CHECKING:
    from collections.abc import Sequence

    from waymark.models.unit import UnitPatch

logger = logging.getLogger(__name__)


class HttpUnitStore:
    """Unit store backed by the annotation REST API.

    Owns an ``httpx.AsyncClient``; use as an async context manager or call
    ``aclose()`` when done.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> HttpUnitStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            msg = f"{method} {path} failed with HTTP {e.response.status_code}"
            raise StoreError(msg) from e
        except httpx.HTTPError as e:
            msg = f"{method} {path} failed: {e}"
            raise StoreError(msg) from e
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            msg = f"{method} {path} returned invalid JSON"
            raise StoreError(msg) from e

    @staticmethod
    def _units(payload: Any) -> list[LogicalUnit]:
        if isinstance(payload, dict):
            payload = payload.get("units", [])
        if not isinstance(payload, list):
            msg = f"Expected a list of units, got {type(payload).__name__}"
            raise StoreError(msg)
        return [LogicalUnit.from_record(record) for record in payload]

    async def fetch_units(
        self, source_code: str, source_page_id: int
    ) -> list[LogicalUnit]:
        payload = await self._request(
            "GET",
            "/api/units",
            params={"source_code": source_code, "source_page_id": source_page_id},
        )
        units = self._units(payload)
        logger.debug(
            "Fetched %d units for %s:%d", len(units), source_code, source_page_id
        )
        return units

    async def fetch_anchor_units(
        self, source_code: str, anchor_ids: Sequence[str]
    ) -> list[LogicalUnit]:
        if not anchor_ids:
            return []
        payload = await self._request(
            "GET",
            "/api/units/by-anchor",
            params={"source_code": source_code, "anchor_ids": ",".join(anchor_ids)},
        )
        units = self._units(payload)
        logger.debug(
            "Fetched %d units for %d anchors on %s",
            len(units),
            len(anchor_ids),
            source_code,
        )
        return units

    async def save_patches(self, patches: Sequence[UnitPatch]) -> None:
        if not patches:
            return
        await self._request(
            "POST",
            "/api/units/batch-update",
            json={"updates": [patch.to_record() for patch in patches]},
        )
        logger.debug("Saved %d unit patches", len(patches))
