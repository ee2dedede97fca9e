"""Commitment terms: the bundled definitions and their catalog entities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from pydantic import BaseModel, ConfigDict

from fecatalog.catalog.cost import copy_as_needed
from fecatalog.model import PriceTerm

if TYPE_CHECKING:
    from fecatalog.catalog.context import UpdateContext

_TERMS_PATH = Path(__file__).parent.parent / "data" / "terms.json"

# Provider's name of the "convertible" reservation option
FLEXIBLE_TERM = "flexible"


class TermDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str
    period: int  # months


def load_term_definitions(path: Path | None = None) -> dict[str, TermDefinition]:
    """Load the term table, keyed by term code."""
    data = json.loads((path or _TERMS_PATH).read_text())
    terms = {}
    for code, raw in data.items():
        term = TermDefinition.model_validate(raw)
        term.id = code
        terms[code] = term
    return terms


def install_price_term(
    context: UpdateContext,
    definition: TermDefinition,
    persister: Callable[[PriceTerm], object],
) -> PriceTerm:
    """Get or create the term entity, completing it on its first resolution in the run."""
    code = definition.id.lower()
    term = context.price_terms.get(code)
    if term is None:
        term = context.price_terms[code] = PriceTerm(code=code)
    elif code in context.installed_terms:
        return term
    context.installed_terms.add(code)

    def _update(t: PriceTerm) -> None:
        t.name = definition.name
        t.period = definition.period
        t.reservation = False
        t.convertible_family = FLEXIBLE_TERM in code
        t.convertible_type = FLEXIBLE_TERM in code
        t.convertible_location = False
        t.convertible_os = True
        t.ephemeral = False

    return copy_as_needed(context, term, _update, persister)
