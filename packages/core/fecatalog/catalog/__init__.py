"""Price catalog package — SQLite-backed regions, instance types, terms and prices."""

from fecatalog.catalog.refresh import RefreshResult, refresh_catalog
from fecatalog.catalog.store import SCHEMA, CatalogStore

__all__ = [
    "CatalogStore",
    "RefreshResult",
    "SCHEMA",
    "refresh_catalog",
]
