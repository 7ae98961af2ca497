"""
Repository package for data access layers.

The catalog repository is chosen by `CATALOG_BACKEND` (`sql` | `memory`), or
by `CATALOG_REPOSITORY_IMPL` set to a dotted path like:

    myapp.data.catalog:ReadOnlyReplicaCatalogRepository

The class must implement `imagecdn.repositories.catalog.CatalogRepositoryProtocol`.
"""

from __future__ import annotations

from imagecdn.repositories.catalog import (
    CatalogRecord,
    CatalogRepositoryProtocol,
    MemoryCatalogRepository,
    SqlCatalogRepository,
    get_catalog_repository,
)

__all__ = [
    "CatalogRecord",
    "CatalogRepositoryProtocol",
    "MemoryCatalogRepository",
    "SqlCatalogRepository",
    "get_catalog_repository",
]
