"""Unit store clients: REST backend, in-memory mock and factory."""

from waymark.store.factory import clear_store_cache, get_unit_store
from waymark.store.http import HttpUnitStore
from waymark.store.mock import MockUnitStore
from waymark.store.protocol import UnitStoreProtocol

__all__ = [
    "HttpUnitStore",
    "MockUnitStore",
    "UnitStoreProtocol",
    "clear_store_cache",
    "get_unit_store",
]
