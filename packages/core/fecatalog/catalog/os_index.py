"""Index of license add-on costs: region -> type -> OS -> software -> row."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, Mapping

from fecatalog.catalog.product import location_from_name, parse_product
from fecatalog.feed import OsRow
from fecatalog.model import Region, VmOs

logger = logging.getLogger(__name__)

# Software key of OS-only prices, no license add-on
NO_SOFTWARE = "DEF"


class OsPriceIndex:
    def __init__(self) -> None:
        self._prices: dict[str, dict[str, dict[VmOs, dict[str, OsRow]]]] = {}
        self._count = 0

    def add(self, row: OsRow) -> None:
        if row.location is None or row.type is None or row.os is None:
            raise ValueError(f"Incomplete OS price row: {row.product!r}")
        softwares = (
            self._prices.setdefault(row.location, {}).setdefault(row.type, {}).setdefault(row.os, {})
        )
        key = row.software or NO_SOFTWARE
        if key not in softwares:
            self._count += 1
        softwares[key] = row

    def entries(self, region: str, type_code: str) -> Iterator[tuple[VmOs, str | None, OsRow]]:
        """Yield ``(os, software, row)`` for a region and type; software ``None`` for OS-only."""
        for os, softwares in self._prices.get(region, {}).get(type_code, {}).items():
            for software, row in softwares.items():
                yield os, (None if software == NO_SOFTWARE else software), row

    def __len__(self) -> int:
        return self._count


def build_os_index(
    rows: Iterable[OsRow],
    region_names: Mapping[str, Region],
    is_enabled_os: Callable[[VmOs], bool] | None = None,
) -> OsPriceIndex:
    """Consume the whole OS feed into an index keyed by resolved region code."""
    index = OsPriceIndex()
    for row in rows:
        parsed = parse_product(row.product)
        if parsed is None:
            # Maybe a CSV header remnant
            logger.debug("Skipped OS row %r", row.product)
            continue
        if row.os is None:
            # Price row before any recognized licence block
            continue
        if is_enabled_os is not None and not is_enabled_os(row.os):
            continue
        human_name, type_code = parsed
        row.location = location_from_name(region_names, human_name)
        row.type = type_code
        index.add(row)
    return index
