"""Product name parsing and region label resolution."""

from __future__ import annotations

import re
from typing import Mapping

from fecatalog.model import Region

# Sample: "Paris - t2.micro (1 vCPU, 1GB RAM)"
PRODUCT_PATTERN = re.compile(r"^\s*(\S+)\s*-\s*(\S+)\s*\(.*$")


def parse_product(product: str | None) -> tuple[str, str] | None:
    """Return ``(region label, instance type code)``, or ``None`` for non product text."""
    if not product:
        return None
    matcher = PRODUCT_PATTERN.match(product)
    if not matcher:
        return None
    return matcher.group(1), matcher.group(2)


def location_from_name(region_names: Mapping[str, Region], human_name: str) -> str:
    """Return the region code whose sub-region is ``human_name``, else the label itself."""
    wanted = human_name.lower()
    for code, region in region_names.items():
        if region.sub_region and region.sub_region.lower() == wanted:
            return code
    return human_name
