"""fecatalog — Flexible Engine pricing feeds into a normalized price catalog."""

from fecatalog.config import Settings, load_settings
from fecatalog.model import (
    CatalogCounts,
    InstancePrice,
    InstanceType,
    PriceTerm,
    Rate,
    Region,
    SupportPrice,
    SupportType,
    Tenancy,
    VmOs,
)

__version__ = "0.1.0"

__all__ = [
    "CatalogCounts",
    "CatalogStore",
    "FePriceImport",
    "ImportStatus",
    "InstancePrice",
    "InstanceType",
    "PriceTerm",
    "Rate",
    "Region",
    "Settings",
    "SupportPrice",
    "SupportType",
    "Tenancy",
    "VmOs",
    "load_settings",
    "refresh_catalog",
]


def __getattr__(name: str):
    # Lazy imports for the modules that touch the database
    if name == "CatalogStore":
        from fecatalog.catalog.store import CatalogStore

        return CatalogStore
    if name in ("FePriceImport", "ImportStatus"):
        from fecatalog.catalog import importer

        return getattr(importer, name)
    if name == "refresh_catalog":
        from fecatalog.catalog.refresh import refresh_catalog

        return refresh_catalog
    raise AttributeError(f"module 'fecatalog' has no attribute {name!r}")
