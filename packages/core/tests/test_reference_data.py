"""Tests for the bundled terms, regions and support tables."""

from __future__ import annotations

import re
from unittest.mock import MagicMock

from fecatalog.catalog.context import UpdateContext
from fecatalog.catalog.regions import install_region, load_region_names
from fecatalog.catalog.support import (
    SupportPriceDefinition,
    install_support_price,
    install_support_type,
    load_support_prices,
    load_support_types,
)
from fecatalog.catalog.terms import TermDefinition, install_price_term, load_term_definitions
from fecatalog.model import PriceTerm, Rate, Region


class TestTermDefinitions:
    def test_bundled_terms(self):
        terms = load_term_definitions()
        assert len(terms) == 13
        assert terms["ri-3y-flexible"].name == "Reserved, 3yr, flexible"
        assert terms["ri-3y-flexible"].period == 36
        assert terms["ri-3y-flexible"].id == "ri-3y-flexible"
        assert terms["on-demand"].period == 1

    def test_flexible_flags(self):
        context = UpdateContext()
        term = install_price_term(context, load_term_definitions()["ri-1y-flexible"], MagicMock())
        assert term.convertible_family is True
        assert term.convertible_type is True
        assert term.convertible_os is True
        assert term.convertible_location is False
        assert term.reservation is False
        assert term.ephemeral is False

    def test_standard_flags(self):
        term = install_price_term(UpdateContext(), load_term_definitions()["ri-1y"], MagicMock())
        assert term.convertible_family is False
        assert term.convertible_type is False
        assert term.convertible_os is True
        assert term.period == 12

    def test_code_lower_cased(self):
        context = UpdateContext()
        term = install_price_term(context, TermDefinition(id="RI-1Y", name="x", period=12), MagicMock())
        assert term.code == "ri-1y"
        assert "ri-1y" in context.price_terms

    def test_resolved_once_per_run(self):
        context = UpdateContext(force=True)
        persister = MagicMock()
        definition = TermDefinition(id="ri-1y", name="Reserved, 1yr", period=12)
        first = install_price_term(context, definition, persister)
        first.name = "edited"
        again = install_price_term(context, definition, persister)
        assert again is first
        assert again.name == "edited"
        persister.assert_called_once()

    def test_existing_term_kept_without_force(self):
        context = UpdateContext()
        context.price_terms["ri-1y"] = PriceTerm(code="ri-1y", name="custom", period=11, id=4)
        term = install_price_term(context, TermDefinition(id="ri-1y", name="Reserved, 1yr", period=12), MagicMock())
        assert term.name == "custom"
        assert term.period == 11


class TestRegions:
    def test_bundled_regions(self):
        regions = load_region_names()
        paris = regions["eu-west-0"]
        assert paris.name == "eu-west-0"
        assert paris.sub_region == "Paris"
        assert paris.country_m49 == 250
        assert paris.id is None

    def test_install_region_copies_reference(self):
        context = UpdateContext(region_names={"eu-west-0": Region(name="eu-west-0", description="Paris")})
        persister = MagicMock()
        region = install_region(context, "eu-west-0", persister)
        assert region.description == "Paris"
        assert context.regions["eu-west-0"] is region
        persister.assert_called_once_with(region)

    def test_filtered_region(self):
        context = UpdateContext(valid_region=re.compile("eu-west-1"))
        assert install_region(context, "eu-west-0", MagicMock()) is None
        assert context.regions == {}

    def test_unknown_region_created_bare(self):
        region = install_region(UpdateContext(), "Paris", MagicMock())
        assert region.name == "Paris"
        assert region.sub_region is None


class TestSupport:
    def test_bundled_types(self):
        types = {t.code: t for t in load_support_types()}
        assert set(types) == {"fe-standard", "fe-business", "fe-excellence"}
        assert types["fe-excellence"].level is Rate.BEST
        assert types["fe-excellence"].sla_week_end is True
        assert types["fe-standard"].access_api is None

    def test_bundled_prices(self):
        prices = {p.code: p for p in load_support_prices()}
        assert prices["fe-excellence"].cost == 5000
        assert prices["fe-standard"].min is None

    def test_install_type_always_saved(self):
        context = UpdateContext()
        persister = MagicMock()
        definition = load_support_types()[0]
        install_support_type(context, definition, persister)
        install_support_type(context, definition, persister)
        assert persister.call_count == 2
        assert context.writes == 2

    def test_install_price(self):
        context = UpdateContext()
        persister = MagicMock()
        for definition in load_support_types():
            install_support_type(context, definition, MagicMock())
        price = install_support_price(
            context, SupportPriceDefinition(code="fe-business", type="fe-business", rate=0.1, cost=300), persister
        )
        assert price.type is context.support_types["fe-business"]
        assert price.min == 0.0
        assert price.cost == 300
        persister.assert_called_once_with(price)

    def test_install_price_unknown_type(self):
        definition = SupportPriceDefinition(code="x", type="missing", cost=1)
        assert install_support_price(UpdateContext(), definition, MagicMock()) is None
