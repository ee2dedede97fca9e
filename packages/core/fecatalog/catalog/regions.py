"""Bundled region table and region entities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, ConfigDict

from fecatalog.catalog.cost import copy_as_needed
from fecatalog.model import Region

if TYPE_CHECKING:
    from fecatalog.catalog.context import UpdateContext

_REGIONS_PATH = Path(__file__).parent.parent / "data" / "regions.json"


class RegionDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    sub_region: str | None = None
    description: str | None = None
    placement: str | None = None
    continent_m49: int | None = None
    country_m49: int | None = None
    latitude: float | None = None
    longitude: float | None = None


def load_region_names(path: Path | None = None) -> dict[str, Region]:
    """Load the region name mapping: stable code -> reference region."""
    data = json.loads((path or _REGIONS_PATH).read_text())
    regions = {}
    for code, raw in data.items():
        definition = RegionDefinition.model_validate(raw)
        regions[code] = Region(**definition.model_dump(exclude={"name"}), name=code)
    return regions


def install_region(context: UpdateContext, name: str, persister: Callable[[Region], object]) -> Region | None:
    """Get or create the region, ``None`` when it is filtered out."""
    if not context.is_enabled_region(name):
        return None
    region = context.regions.get(name)
    if region is None:
        region = context.regions[name] = Region(name=name)

    def _update(r: Region) -> None:
        reference = context.region_names.get(name) or Region(name=name)
        r.description = reference.description
        r.sub_region = reference.sub_region
        r.placement = reference.placement
        r.continent_m49 = reference.continent_m49
        r.country_m49 = reference.country_m49
        r.latitude = reference.latitude
        r.longitude = reference.longitude

    return copy_as_needed(context, region, _update, persister)
