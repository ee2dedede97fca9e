"""Cost arithmetic and the copy-as-needed / save-as-needed disciplines.

Descriptive attributes of an existing entity are only rewritten in force
mode, so manual catalog edits survive ordinary refresh runs. Costs are
recomputed on every run but only persisted when they actually change.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Callable, TypeVar

if TYPE_CHECKING:
    from fecatalog.catalog.context import UpdateContext
    from fecatalog.feed import OsRow

T = TypeVar("T")

ON_DEMAND = "on-demand"
_THOUSANDTH = Decimal("0.001")


def round3(value: float) -> float:
    """Round half-up to 3 decimals, the catalog storage precision."""
    return float(Decimal(repr(value)).quantize(_THOUSANDTH, rounding=ROUND_HALF_UP))


def monthly_cost(coeff: float, value: float | None) -> float | None:
    """Scale a feed figure to a monthly cost. ``None`` means the term is not offered."""
    if value is None:
        return None
    return coeff * value


def os_monthly_cost(term_code: str, period: int, base: float, os_row: OsRow, hours_month: float) -> float | None:
    """Combine a base monthly cost with a license add-on.

    On-demand uses the hourly license figure, every other term the monthly
    figure scaled by the term period. ``None`` when the needed figure is missing.
    """
    if term_code == ON_DEMAND:
        if os_row.cost1h is None:
            return None
        return base + os_row.cost1h * hours_month
    if os_row.cost1m is None:
        return None
    return base + os_row.cost1m * period


def period_cost(initial_cost: float | None, cost: float, period: int) -> float:
    return round3((initial_cost or 0.0) + cost * period)


def copy_as_needed(
    context: UpdateContext,
    entity: T,
    updater: Callable[[T], None],
    persister: Callable[[T], object] | None = None,
) -> T:
    """Populate descriptive fields when the entity is new or the run is forced."""
    if context.force or entity.is_new:  # type: ignore[attr-defined]
        updater(entity)
        if persister is not None:
            persister(entity)
            context.writes += 1
    return entity


def save_as_needed(
    context: UpdateContext,
    entity: T,
    old_cost: float | None,
    new_cost: float,
    update_cost: Callable[[float, float], None],
    persister: Callable[[T], object],
) -> bool:
    """Write the cost and its derived fields unless nothing changed.

    ``update_cost`` receives the rounded and the raw cost. Returns whether
    the entity was persisted.
    """
    rounded = round3(new_cost)
    if not (context.force or entity.is_new) and old_cost is not None and round3(old_cost) == rounded:  # type: ignore[attr-defined]
        return False
    update_cost(rounded, new_cost)
    persister(entity)
    context.writes += 1
    return True
