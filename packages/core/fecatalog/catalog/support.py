"""Static support plans: one-shot load of the bundled support catalog."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from pydantic import BaseModel, ConfigDict, field_validator

from fecatalog.catalog.cost import copy_as_needed, save_as_needed
from fecatalog.model import Rate, SupportPrice, SupportType

if TYPE_CHECKING:
    from fecatalog.catalog.context import UpdateContext

_DATA_DIR = Path(__file__).parent.parent / "data"
SUPPORT_TYPES_PATH = _DATA_DIR / "support-types.csv"
SUPPORT_PRICES_PATH = _DATA_DIR / "support-prices.csv"


class _CsvModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def blank_as_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class SupportTypeDefinition(_CsvModel):
    code: str
    name: str | None = None
    description: str | None = None
    access_api: str | None = None
    access_chat: str | None = None
    access_email: str | None = None
    access_phone: str | None = None
    commitment: int | None = None
    seats: int | None = None
    level: Rate | None = None
    sla_week_end: bool | None = None


class SupportPriceDefinition(_CsvModel):
    code: str
    type: str
    min: float | None = None
    limit: float | None = None
    rate: float | None = None
    cost: float | None = None


def _read_csv(path: Path) -> list[dict[str, str]]:
    with path.open("r", encoding="utf-8", newline="") as handle:
        return list(csv.DictReader(handle, delimiter=";"))


def load_support_types(path: Path | None = None) -> list[SupportTypeDefinition]:
    return [SupportTypeDefinition.model_validate(row) for row in _read_csv(path or SUPPORT_TYPES_PATH)]


def load_support_prices(path: Path | None = None) -> list[SupportPriceDefinition]:
    return [SupportPriceDefinition.model_validate(row) for row in _read_csv(path or SUPPORT_PRICES_PATH)]


def install_support_type(
    context: UpdateContext,
    definition: SupportTypeDefinition,
    persister: Callable[[SupportType], object],
) -> SupportType:
    """Get or create the support type; its details are always merged."""
    support_type = context.support_types.get(definition.code)
    if support_type is None:
        support_type = context.support_types[definition.code] = SupportType(code=definition.code)
    support_type.name = definition.name or definition.code
    support_type.description = definition.description
    support_type.access_api = definition.access_api
    support_type.access_chat = definition.access_chat
    support_type.access_email = definition.access_email
    support_type.access_phone = definition.access_phone
    support_type.commitment = definition.commitment
    support_type.seats = definition.seats
    support_type.level = definition.level
    support_type.sla_week_end = bool(definition.sla_week_end)
    persister(support_type)
    context.writes += 1
    return support_type


def install_support_price(
    context: UpdateContext,
    definition: SupportPriceDefinition,
    persister: Callable[[SupportPrice], object],
) -> SupportPrice | None:
    """Get or create the support price. ``None`` when its type is unknown."""
    support_type = context.support_types.get(definition.type)
    if support_type is None:
        return None
    price = context.previous_support.get(definition.code)
    if price is None:
        price = context.previous_support[definition.code] = SupportPrice(code=definition.code)

    def _update(p: SupportPrice) -> None:
        p.limit = definition.limit
        p.min = definition.min or 0.0
        p.rate = definition.rate
        p.type = support_type

    copy_as_needed(context, price, _update)

    def _set_cost(rounded: float, _raw: float) -> None:
        price.cost = rounded

    save_as_needed(context, price, price.cost, definition.cost or 0.0, _set_cost, persister)
    return price
