"""Per-run state of a catalog import."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fecatalog.catalog.os_index import OsPriceIndex
from fecatalog.config import DEFAULT_HOURS_MONTH, PLUGIN_KEY
from fecatalog.model import InstancePrice, InstanceType, PriceTerm, Region, SupportPrice, SupportType, VmOs

if TYPE_CHECKING:
    from fecatalog.catalog.terms import TermDefinition

_ANY = ".*"


@dataclass
class UpdateContext:
    """Lookup caches and counters of one run, discarded afterwards.

    Entity caches are keyed by code and seeded from the store, so a run
    updates existing entities in place instead of creating new ones.
    """

    node: str = PLUGIN_KEY
    force: bool = False
    hours_month: float = DEFAULT_HOURS_MONTH
    valid_region: re.Pattern = field(default_factory=lambda: re.compile(_ANY))
    valid_instance_type: re.Pattern = field(default_factory=lambda: re.compile(_ANY, re.IGNORECASE))
    valid_os: re.Pattern = field(default_factory=lambda: re.compile(_ANY, re.IGNORECASE))

    # Bundled region table: code -> reference region
    region_names: dict[str, Region] = field(default_factory=dict)
    csv_terms: dict[str, TermDefinition] = field(default_factory=dict)

    regions: dict[str, Region] = field(default_factory=dict)
    instance_types: dict[str, InstanceType] = field(default_factory=dict)
    price_terms: dict[str, PriceTerm] = field(default_factory=dict)
    previous: dict[str, InstancePrice] = field(default_factory=dict)
    support_types: dict[str, SupportType] = field(default_factory=dict)
    previous_support: dict[str, SupportPrice] = field(default_factory=dict)

    os_prices: OsPriceIndex = field(default_factory=OsPriceIndex)

    # Codes of the instance prices written during this run
    prices: set[str] = field(default_factory=set)
    # Term codes already resolved during this run
    installed_terms: set[str] = field(default_factory=set)
    writes: int = 0

    def is_enabled_region(self, name: str) -> bool:
        return self.valid_region.fullmatch(name) is not None

    def is_enabled_type(self, code: str) -> bool:
        return self.valid_instance_type.fullmatch(code) is not None

    def is_enabled_os(self, os: VmOs) -> bool:
        return self.valid_os.fullmatch(os.value) is not None
