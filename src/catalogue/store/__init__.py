"""Catalog store factory.

Provides get_catalog_store() / set_catalog_store() to swap implementations:
- InMemoryCatalogStore for development and testing
- a document-store adapter in production
"""

from catalogue.store.memory_adapter import InMemoryCatalogStore
from catalogue.store.port import CatalogStore, ProductRecord

__all__ = [
    "CatalogStore",
    "InMemoryCatalogStore",
    "ProductRecord",
    "get_catalog_store",
    "reset_catalog_store",
    "set_catalog_store",
]

_current_store: CatalogStore | None = None


def get_catalog_store() -> CatalogStore:
    """Return the current catalog store. Defaults to InMemoryCatalogStore."""
    global _current_store
    if _current_store is None:
        _current_store = InMemoryCatalogStore()
    return _current_store


def set_catalog_store(store: CatalogStore) -> None:
    """Override the active catalog store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_catalog_store() -> None:
    """Reset to default store."""
    global _current_store
    _current_store = None
