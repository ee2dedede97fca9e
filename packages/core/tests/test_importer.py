"""Tests for the price import merge engine.

Feeds are served from memory and the catalog lives in a temporary SQLite file.
"""

from __future__ import annotations

import pytest
from fe_feeds import CONVERTIBLE_OFF, CONVERTIBLE_ON, StaticAdapter, compute_line, os_line
from fecatalog.catalog.importer import KEY, PHASES, FePriceImport, check_status, get_version
from fecatalog.catalog.support import load_support_types
from fecatalog.config import Settings
from fecatalog.model import Rate, Tenancy, VmOs

P2 = "Paris - p2.2xlarge.8 (8 vCPU, 64GB RAM)"
WINDOWS_BLOCK = "Licence Windows Server (par VM)"

STANDARD_TERMS = {
    "on-demand",
    "on-demand-1m",
    "ri-1y",
    "ri-3y",
    "ri-5y",
    "ri-1y-upfront",
    "ri-2y-upfront",
    "ri-3y-upfront",
}


def _import(store, settings, compute, os=None, **kwargs) -> FePriceImport:
    return FePriceImport(store, StaticAdapter(compute, os), settings, **kwargs)


def _unmapped(store, settings, compute, os=None) -> FePriceImport:
    # No region table: product labels become the region codes
    return _import(store, settings, compute, os, region_names={})


def _term_of(code: str) -> str:
    return code.split("/")[1]


class TestPluginMetadata:
    def test_key(self):
        assert KEY == "service:prov:fe"

    def test_version(self):
        assert get_version() == "2"

    def test_status(self):
        assert check_status() is True


class TestEndToEnd:
    def test_paris_micro_on_demand(self, store, settings, paris_micro):
        status = _unmapped(store, settings, [paris_micro]).install()

        types = store.find_instance_types()
        assert list(types) == ["t2.micro"]
        itype = types["t2.micro"]
        assert itype.cpu == 1
        assert itype.ram == 1024
        assert itype.cpu_rate is Rate.WORST
        assert itype.network_rate is Rate.WORST
        assert itype.ram_rate is Rate.MEDIUM
        assert itype.constant is False

        prices = store.find_instance_prices()
        price = prices["paris/on-demand/t2.micro/linux"]
        assert price.cost == pytest.approx(14.4)
        assert price.os is VmOs.LINUX
        assert price.software is None
        assert price.tenancy is Tenancy.SHARED
        assert price.location.name == "Paris"
        assert "paris/on-demand/t2.micro/linux" in status.touched

    def test_windows_fan_out(self, store, settings, paris_micro):
        os_lines = [WINDOWS_BLOCK, os_line("Paris - t2.micro (1 vCPU, 1GB RAM)", 0.01, 7.3)]
        _unmapped(store, settings, [paris_micro], os_lines).install()

        prices = store.find_instance_prices()
        windows = prices["paris/on-demand/t2.micro/windows"]
        assert windows.cost == pytest.approx(0.02 * 720 + 0.01 * 720)
        assert windows.os is VmOs.WINDOWS
        assert windows.software is None
        assert prices["paris/on-demand/t2.micro/linux"].cost == pytest.approx(14.4)

    def test_os_add_on_scaled_by_period(self, store, settings):
        line = compute_line("Paris - t2.micro (1 vCPU, 1GB RAM)", cost_m_1y_no_upfront=10.0)
        os_lines = [WINDOWS_BLOCK, os_line("Paris - t2.micro (1 vCPU, 1GB RAM)", 0.01, 7.0)]
        _unmapped(store, settings, [line], os_lines).install()
        assert store.find_instance_prices()["paris/ri-1y/t2.micro/windows"].cost == pytest.approx(10.0 + 7.0 * 12)

    def test_software_kept_on_price(self, store, settings, paris_micro):
        os_lines = ["Licence SUSE for SAP (par VM)", os_line("Paris - t2.micro (1 vCPU, 1GB RAM)", 0.05, 36.5)]
        _unmapped(store, settings, [paris_micro], os_lines).install()
        price = store.find_instance_prices()["paris/on-demand/t2.micro/suse"]
        assert price.software == "SAP"

    def test_missing_os_figure_skipped(self, store, settings, paris_micro):
        os_lines = [WINDOWS_BLOCK, os_line("Paris - t2.micro (1 vCPU, 1GB RAM)", None, 7.3)]
        _unmapped(store, settings, [paris_micro], os_lines).install()
        assert "paris/on-demand/t2.micro/windows" not in store.find_instance_prices()

    def test_region_resolved_from_sub_region(self, store, settings, paris_micro):
        _import(store, settings, [paris_micro]).install()
        prices = store.find_instance_prices()
        assert "eu-west-0/on-demand/t2.micro/linux" in prices
        region = store.find_regions()["eu-west-0"]
        assert region.description == "Paris"
        assert region.country_m49 == 250

    def test_os_index_uses_resolved_region(self, store, settings, paris_micro):
        os_lines = [WINDOWS_BLOCK, os_line("Paris - t2.micro (1 vCPU, 1GB RAM)", 0.01, 7.3)]
        _import(store, settings, [paris_micro], os_lines).install()
        assert "eu-west-0/on-demand/t2.micro/windows" in store.find_instance_prices()


class TestTermExpansion:
    def test_standard_row(self, store, settings):
        line = compute_line(
            P2,
            cpu=8,
            ram="64",
            cost_h=1.5,
            cost_m=1000.0,
            cost_m_1y_no_upfront=900.0,
            cost_m_3y_no_upfront=800.0,
            cost_m_5y_no_upfront=700.0,
            cost_1y_upfront_fees=5000.0,
            cost_2y_upfront_fees=9000.0,
            cost_3y_upfront_fees=12000.0,
        )
        status = _import(store, settings, [line]).install()
        assert {_term_of(c) for c in status.touched} == STANDARD_TERMS

        prices = store.find_instance_prices()
        monthly = prices["eu-west-0/on-demand-1m/p2.2xlarge.8/linux"]
        assert monthly.cost == 1000.0
        upfront = prices["eu-west-0/ri-2y-upfront/p2.2xlarge.8/linux"]
        assert upfront.cost == pytest.approx(1.5 * 720)
        assert upfront.initial_cost == 9000.0
        assert upfront.period == 24
        assert upfront.cost_period == pytest.approx(9000.0 + 1.5 * 720 * 24)
        assert prices["eu-west-0/ri-5y/p2.2xlarge.8/linux"].initial_cost == 0.0

    def test_convertible_row(self, store, settings):
        line = compute_line(
            P2,
            cpu=8,
            ram="64",
            cost_h=1.5,
            cost_m_1y_no_upfront=900.0,
            cost_m_1y_upfront=600.0,
            cost_1y_upfront_fees=3000.0,
            cost_m_2y_upfront=550.0,
            cost_2y_upfront_fees=6000.0,
            cost_m_3y_no_upfront=1238.27,
            cost_m_3y_upfront=500.0,
            cost_3y_upfront_fees=9000.0,
        )
        status = _import(store, settings, [CONVERTIBLE_ON, line]).install()
        terms = {_term_of(c) for c in status.touched}
        assert terms == {
            "ri-1y-flexible",
            "ri-1y-upfront-flexible",
            "ri-2y-upfront-flexible",
            "ri-3y-flexible",
            "ri-3y-upfront-flexible",
        }
        assert not terms & STANDARD_TERMS

        upfront = store.find_instance_prices()["eu-west-0/ri-1y-upfront-flexible/p2.2xlarge.8/linux"]
        assert upfront.cost == 600.0
        assert upfront.initial_cost == 3000.0

    def test_flexible_3y_rounding(self, store, settings):
        line = compute_line(P2, cpu=8, ram="64", cost_m_3y_no_upfront=1238.27)
        _import(store, settings, [CONVERTIBLE_ON, line]).install()

        price = store.find_instance_prices()["eu-west-0/ri-3y-flexible/p2.2xlarge.8/linux"]
        assert price.initial_cost == 0
        assert price.os is VmOs.LINUX
        assert price.tenancy is Tenancy.SHARED
        assert price.period == 36
        assert price.cost == 1238.27
        assert price.cost_period == 44577.72
        assert price.software is None
        assert price.term.code == "ri-3y-flexible"
        assert price.term.name == "Reserved, 3yr, flexible"
        assert price.term.ephemeral is False
        assert price.type.name == "p2.2xlarge.8"
        assert price.type.description is None
        assert price.type.processor == "Intel Xeon"
        assert price.type.auto_scale is True
        assert price.type.constant is True
        assert price.type.ram == 64 * 1024

    def test_extra_convertible_column_wins(self, store, settings):
        line = compute_line(P2, cpu=8, ram="64", cost_m_3y_no_upfront=1238.27, cost_m_3y_convertible=1100.0)
        _import(store, settings, [CONVERTIBLE_ON, line]).install()
        assert store.find_instance_prices()["eu-west-0/ri-3y-flexible/p2.2xlarge.8/linux"].cost == 1100.0

    def test_extra_convertible_column_ignored_on_standard_rows(self, store, settings):
        line = compute_line(P2, cpu=8, ram="64", cost_h=1.5, cost_m_3y_convertible=1100.0)
        status = _import(store, settings, [line]).install()
        assert not any("flexible" in code for code in status.touched)

    def test_back_to_standard_mode(self, store, settings, paris_micro):
        status = _unmapped(store, settings, [CONVERTIBLE_ON, CONVERTIBLE_OFF, paris_micro]).install()
        assert "paris/on-demand/t2.micro/linux" in status.touched

    def test_null_cost_skips_term(self, store, settings, paris_micro):
        status = _unmapped(store, settings, [paris_micro]).install()
        terms = {_term_of(c) for c in status.touched}
        assert "on-demand" in terms
        assert "on-demand-1m" not in terms
        assert "ri-1y" not in terms
        assert "ri-5y" not in terms


class TestFilters:
    def test_region_filtered(self, store, paris_micro):
        status = _import(store, Settings(hours_month=720, regions="eu-west-1"), [paris_micro]).install()
        assert status.touched == set()
        assert store.find_regions() == {}
        assert store.find_instance_types() == {}

    def test_region_pattern_is_case_sensitive(self, store, paris_micro):
        status = _import(store, Settings(hours_month=720, regions="EU-WEST-0"), [paris_micro]).install()
        assert status.touched == set()

    def test_type_filtered(self, store, paris_micro):
        status = _import(store, Settings(hours_month=720, instance_type="S3\\..*"), [paris_micro]).install()
        assert status.touched == set()
        assert store.find_instance_types() == {}
        # the region is installed before the type is checked
        assert "eu-west-0" in store.find_regions()

    def test_type_pattern_is_case_insensitive(self, store, paris_micro):
        status = _import(store, Settings(hours_month=720, instance_type="T2\\..*"), [paris_micro]).install()
        assert "eu-west-0/on-demand/t2.micro/linux" in status.touched

    def test_os_filter_gates_linux(self, store, paris_micro):
        os_lines = [WINDOWS_BLOCK, os_line("Paris - t2.micro (1 vCPU, 1GB RAM)", 0.01, 7.3)]
        status = _import(store, Settings(hours_month=720, os="windows"), [paris_micro], os_lines).install()
        assert "eu-west-0/on-demand/t2.micro/windows" in status.touched
        assert not any(code.endswith("/linux") for code in status.touched)

    def test_unparsable_products_skipped(self, store, settings, paris_micro):
        noise = compute_line("Tarifs ECS", cost_h=1.0)
        status = _unmapped(store, settings, [noise, paris_micro]).install()
        assert {c.split("/")[2] for c in status.touched} == {"t2.micro"}


class TestIdempotence:
    def test_second_run_is_a_no_op(self, store, settings, paris_micro):
        os_lines = [WINDOWS_BLOCK, os_line("Paris - t2.micro (1 vCPU, 1GB RAM)", 0.01, 7.3)]
        first = _import(store, settings, [paris_micro], os_lines).install()
        before = store.find_instance_prices()
        stats = store.get_stats()

        second = _import(store, settings, [paris_micro], os_lines).install()
        after = store.find_instance_prices()

        assert store.get_stats() == stats
        assert second.touched == first.touched
        assert {c: (p.id, p.cost, p.cost_period) for c, p in after.items()} == {
            c: (p.id, p.cost, p.cost_period) for c, p in before.items()
        }
        # only the support types are merged on every run
        assert second.writes == len(load_support_types())

    def test_key_uniqueness(self, store, settings, paris_micro):
        _import(store, settings, [paris_micro, paris_micro]).install()
        _import(store, settings, [paris_micro]).install()
        codes = [row["code"] for row in store.search_prices(limit=1000)]
        assert len(codes) == len(set(codes))

    def test_changed_price_updated_in_place(self, store, settings, paris_micro):
        _unmapped(store, settings, [paris_micro]).install()
        count = store.get_stats().instance_prices
        before = store.find_instance_prices()["paris/on-demand/t2.micro/linux"]

        changed = compute_line("Paris - t2.micro (1 vCPU, 1GB RAM)", cost_h=0.03)
        _unmapped(store, settings, [changed]).install()
        after = store.find_instance_prices()

        price = after["paris/on-demand/t2.micro/linux"]
        assert price.id == before.id
        assert price.cost == pytest.approx(21.6)
        assert price.period == before.period
        assert price.type.id == before.type.id
        assert len(after) == count


class TestForceMode:
    def test_manual_edit_survives(self, store, settings, paris_micro):
        _unmapped(store, settings, [paris_micro]).install()
        itype = store.find_instance_types()["t2.micro"]
        itype.name = "Burstable micro"
        store.save_instance_type(itype)

        _unmapped(store, settings, [paris_micro]).install(force=False)
        assert store.find_instance_types()["t2.micro"].name == "Burstable micro"

        _unmapped(store, settings, [paris_micro]).install(force=True)
        assert store.find_instance_types()["t2.micro"].name == "t2.micro"

    def test_force_rewrites_unchanged_costs(self, store, settings, paris_micro):
        _unmapped(store, settings, [paris_micro]).install()
        status = _unmapped(store, settings, [paris_micro]).install(force=True)
        assert status.writes >= len(status.touched)


class TestProgress:
    def test_phases(self, store, settings, paris_micro):
        seen = []
        status = _import(store, settings, [paris_micro], on_step=lambda s: seen.append((s.phase, s.done))).install()
        assert seen == [(phase, i + 1) for i, phase in enumerate(PHASES)]
        assert status.phase == "install-support"
        assert status.done == 4
        assert status.workload == 4
        assert status.node == "service:prov:fe"
        assert status.started is not None
        assert status.finished is not None

    def test_counts(self, store, settings, paris_micro):
        status = _import(store, settings, [paris_micro]).install()
        assert status.locations == 1
        assert status.instance_types == 1
        assert status.price_terms == 13
        assert status.instance_prices == len(status.touched)
        assert status.support_prices == 3

    def test_support_installed(self, store, settings, paris_micro):
        _import(store, settings, [paris_micro]).install()
        prices = store.find_support_prices()
        assert prices["fe-excellence"].cost == 5000.0
        assert prices["fe-excellence"].type.code == "fe-excellence"


class TestFailures:
    def test_missing_feed_aborts(self, store, settings, paris_micro):
        class MissingOs(StaticAdapter):
            def fetch_os_rows(self):
                raise FileNotFoundError("https://fe.ligoj.io/prices/pricing-os.csv")

        importer = FePriceImport(store, MissingOs([paris_micro]), settings)
        with pytest.raises(FileNotFoundError):
            importer.install()
        assert importer.status.phase == "install-instances"
        # terms were committed by the initialize phase
        assert len(store.find_price_terms()) == 13
        assert store.find_instance_prices() == {}
