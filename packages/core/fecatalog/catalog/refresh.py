"""Catalog refresh pipeline — pull the Flexible Engine price feeds into SQLite."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from fecatalog.adapters import FeedAdapter
    from fecatalog.catalog.importer import ImportStatus
    from fecatalog.config import Settings

logger = logging.getLogger(__name__)

LAST_IMPORT_KEY = "import:last"


@dataclass
class RefreshResult:
    node: str
    force: bool = False
    instance_prices: int = 0
    touched: int = 0
    writes: int = 0
    pruned: int = 0
    status: ImportStatus | None = None

    @property
    def unchanged(self) -> int:
        """Prices seen in the feeds whose stored cost did not need a write."""
        return max(self.touched - self.writes, 0)


def _load_adapter(settings: Settings) -> FeedAdapter:
    from fecatalog.adapters.fe import FePricingAdapter

    return FePricingAdapter(settings.prices_url, timeout=settings.timeout)


def refresh_catalog(
    force: bool = False,
    settings: Settings | None = None,
    db_path: str | Path | None = None,
    adapter: FeedAdapter | None = None,
    on_step: Callable[[ImportStatus], None] | None = None,
    prune: bool = False,
) -> RefreshResult:
    """Run one import of the feeds into the catalog of the configured node.

    With ``prune``, prices of the node that the run did not touch are
    deleted afterwards. Feed and store errors propagate.
    """
    from fecatalog.catalog.importer import FePriceImport
    from fecatalog.catalog.store import CatalogStore
    from fecatalog.config import Settings

    settings = settings or Settings()
    store = CatalogStore(db_path or settings.db_path, node=settings.node)
    importer = FePriceImport(store, adapter or _load_adapter(settings), settings, on_step=on_step)

    status = importer.install(force=force)
    result = RefreshResult(
        node=status.node,
        force=force,
        instance_prices=status.instance_prices,
        touched=len(status.touched),
        writes=status.writes,
        status=status,
    )

    if prune:
        result.pruned = store.delete_instance_prices(status.touched)
        result.instance_prices -= result.pruned
        logger.info("Pruned %d stale prices of %s", result.pruned, status.node)

    store.set_metadata(LAST_IMPORT_KEY, datetime.now(timezone.utc).isoformat())
    logger.info(
        "Imported %s: %d prices touched, %d writes", status.node, result.touched, result.writes
    )
    return result
