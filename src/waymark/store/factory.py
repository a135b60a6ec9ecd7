"""Unit store factory.

Provides a factory function to get the appropriate unit store
based on configuration (REST backend or in-memory mock).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from waymark.config import get_settings

if TYPE_CHECKING:
    from waymark.store.protocol import UnitStoreProtocol


# Cached mock store instance so records survive across sessions
_mock_store_instance: UnitStoreProtocol | None = None


def get_unit_store() -> UnitStoreProtocol:
    """Get the appropriate unit store based on configuration.

    If DEV__STORE_MOCK=true, returns MockUnitStore (singleton).
    Otherwise, returns HttpUnitStore pointed at STORE__BASE_URL.

    Returns:
        A unit store implementing UnitStoreProtocol.
    """
    global _mock_store_instance  # noqa: PLW0603
    settings = get_settings()

    if settings.dev.store_mock:
        if _mock_store_instance is None:
            from waymark.store.mock import MockUnitStore

            _mock_store_instance = MockUnitStore()
        return _mock_store_instance

    from waymark.store.http import HttpUnitStore

    store = settings.store
    return HttpUnitStore(
        base_url=store.base_url,
        api_token=store.api_token.get_secret_value(),
        timeout=store.timeout,
    )


def clear_store_cache() -> None:
    """Clear the configuration and mock store caches.

    Useful for testing when you need to reload configuration
    or reset mock store contents.
    """
    global _mock_store_instance  # noqa: PLW0603
    get_settings.cache_clear()
    _mock_store_instance = None
