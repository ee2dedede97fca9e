"""Flexible Engine price import — merge the compute and OS pricing feeds into the catalog.

One run goes through four phases: ``initialize`` loads the reference
tables and the previous catalog state, ``install-instances`` indexes the
OS feed then merges the compute feed, ``install-storages`` is reported
but imports nothing, and ``install-support`` loads the bundled support
plans. Each phase commits its writes in one store transaction.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from fecatalog.catalog.context import UpdateContext
from fecatalog.catalog.cost import ON_DEMAND, copy_as_needed, monthly_cost, os_monthly_cost, period_cost, save_as_needed
from fecatalog.catalog.os_index import build_os_index
from fecatalog.catalog.product import location_from_name, parse_product
from fecatalog.catalog.regions import install_region, load_region_names
from fecatalog.catalog.support import install_support_price, install_support_type, load_support_prices, load_support_types
from fecatalog.catalog.terms import FLEXIBLE_TERM, TermDefinition, install_price_term, load_term_definitions
from fecatalog.config import PLUGIN_KEY, Settings
from fecatalog.model import InstancePrice, InstanceType, PriceTerm, Rate, Region, Tenancy, VmOs

if TYPE_CHECKING:
    from fecatalog.adapters import FeedAdapter
    from fecatalog.catalog.store import CatalogStore
    from fecatalog.feed import ComputeRow

logger = logging.getLogger(__name__)

KEY = PLUGIN_KEY
VERSION = "2"

PHASES = ("initialize", "install-instances", "install-storages", "install-support")

_PROCESSOR = "Intel Xeon"
_BURSTABLE_FAMILY = "t"


@dataclass
class ImportStatus:
    """Progress and outcome of one import run."""

    node: str
    phase: str = ""
    done: int = 0
    workload: int = len(PHASES)
    started: datetime | None = None
    finished: datetime | None = None
    locations: int = 0
    instance_types: int = 0
    instance_prices: int = 0
    price_terms: int = 0
    support_prices: int = 0
    touched: set[str] = field(default_factory=set)
    writes: int = 0


def get_version() -> str:
    return VERSION


def check_status() -> bool:
    # The feeds are public, there is no subscription to validate
    return True


class FePriceImport:
    """Merge engine of the Flexible Engine pricing feeds into a catalog store.

    Args:
        store: persistence collaborator, scoped to the catalog node.
        adapter: source of the compute and OS feed rows.
        settings: allow-patterns and hours per month; defaults when omitted.
        on_step: called with the status each time a phase starts.
        region_names: reference region table, the bundled one when omitted.
        term_definitions: term table, the bundled one when omitted.
    """

    def __init__(
        self,
        store: CatalogStore,
        adapter: FeedAdapter,
        settings: Settings | None = None,
        on_step: Callable[[ImportStatus], None] | None = None,
        region_names: dict[str, Region] | None = None,
        term_definitions: dict[str, TermDefinition] | None = None,
    ):
        self.store = store
        self.adapter = adapter
        self.settings = settings or Settings(node=store.node)
        self.on_step = on_step
        self._region_names = region_names
        self._term_definitions = term_definitions
        self.status = ImportStatus(node=store.node)

    def install(self, force: bool = False) -> ImportStatus:
        """Install or update the prices. ``force`` rewrites the descriptive attributes too."""
        self.status = ImportStatus(node=self.store.node, started=datetime.now(timezone.utc))

        self._next_step("initialize")
        with self.store.transaction():
            context = self.init_context(force)

        self._next_step("install-instances")
        with self.store.transaction():
            self.fetch_os_prices(context)
            self.install_instances_prices(context)

        # Storage prices are not published in the feeds
        self._next_step("install-storages")

        self._next_step("install-support")
        with self.store.transaction():
            self.install_support(context)

        return self._finish(context)

    def _next_step(self, phase: str) -> None:
        self.status.phase = phase
        self.status.done += 1
        logger.info("%s: %s (%d/%d)", self.status.node, phase, self.status.done, self.status.workload)
        if self.on_step is not None:
            self.on_step(self.status)

    def _finish(self, context: UpdateContext) -> ImportStatus:
        counts = self.store.get_stats()
        self.status.locations = counts.locations
        self.status.instance_types = counts.instance_types
        self.status.instance_prices = counts.instance_prices
        self.status.price_terms = counts.price_terms
        self.status.support_prices = counts.support_prices
        self.status.touched = set(context.prices)
        self.status.writes = context.writes
        self.status.finished = datetime.now(timezone.utc)
        return self.status

    # ------------------------------------------------------------------
    # initialize
    # ------------------------------------------------------------------

    def init_context(self, force: bool) -> UpdateContext:
        settings = self.settings
        context = UpdateContext(
            node=self.store.node,
            force=force,
            hours_month=settings.hours_month,
            valid_region=re.compile(settings.regions),
            valid_instance_type=re.compile(settings.instance_type, re.IGNORECASE),
            valid_os=re.compile(settings.os, re.IGNORECASE),
        )
        context.region_names = dict(self._region_names if self._region_names is not None else load_region_names())
        context.instance_types = self.store.find_instance_types()
        context.price_terms = self.store.find_price_terms()
        context.support_types = self.store.find_support_types()
        context.previous_support = self.store.find_support_prices(context.support_types)
        regions = self.store.find_regions()
        context.regions = {name: region for name, region in regions.items() if context.is_enabled_region(name)}
        context.previous = self.store.find_instance_prices(
            regions=regions, types=context.instance_types, terms=context.price_terms
        )

        terms = self._term_definitions if self._term_definitions is not None else load_term_definitions()
        for definition in terms.values():
            install_price_term(context, definition, self.store.save_price_term)
        context.csv_terms = {code.lower(): definition for code, definition in terms.items()}

        for region in context.region_names.values():
            region.description = region.sub_region
        return context

    # ------------------------------------------------------------------
    # install-instances
    # ------------------------------------------------------------------

    def fetch_os_prices(self, context: UpdateContext) -> None:
        logger.info("FE OS import started@%s ...", getattr(self.adapter, "os_url", self.adapter.provider))
        context.os_prices = build_os_index(self.adapter.fetch_os_rows(), context.region_names, context.is_enabled_os)
        logger.info("FE OS import finished: %d OS prices", len(context.os_prices))

    def install_instances_prices(self, context: UpdateContext) -> None:
        logger.info(
            "FE OnDemand/Reserved import started@%s ...", getattr(self.adapter, "compute_url", self.adapter.provider)
        )
        before = len(context.prices)
        for row in self.adapter.fetch_compute_rows():
            self.install_instance_prices(context, row)
        logger.info(
            "FE OnDemand/Reserved import finished: %d prices (%+d)", len(context.prices), len(context.prices) - before
        )

    def install_instance_prices(self, context: UpdateContext, row: ComputeRow) -> None:
        """Expand one compute row into its term prices."""
        parsed = parse_product(row.product)
        if parsed is None:
            logger.debug("Skipped compute row %r", row.product)
            return
        human_name, type_code = parsed

        region = install_region(context, location_from_name(context.region_names, human_name), self.store.save_region)
        if region is None:
            return
        itype = self.install_instance_type(context, type_code, row)
        if itype is None:
            return

        hours = context.hours_month
        if row.convertible:
            self.install_instance_price(context, region, f"ri-1y-{FLEXIBLE_TERM}", itype, 1, row.cost1y_per_month, 0.0)
            self.install_instance_price(
                context, region, f"ri-1y-upfront-{FLEXIBLE_TERM}", itype, 1, row.cost1y_uf_per_month, row.cost1y_uf_fee
            )
            self.install_instance_price(
                context, region, f"ri-2y-upfront-{FLEXIBLE_TERM}", itype, 1, row.cost2y_uf_per_month, row.cost2y_uf_fee
            )
            self.install_instance_price(context, region, f"ri-3y-{FLEXIBLE_TERM}", itype, 1, row.cost3y_per_month, 0.0)
            self.install_instance_price(
                context, region, f"ri-3y-upfront-{FLEXIBLE_TERM}", itype, 1, row.cost3y_uf_per_month, row.cost3y_uf_fee
            )
            if row.cost3y_per_month_convertible is not None:
                # Flexible 3y price published in the extra column wins
                self.install_instance_price(
                    context, region, f"ri-3y-{FLEXIBLE_TERM}", itype, 1, row.cost3y_per_month_convertible, 0.0
                )
        else:
            self.install_instance_price(context, region, ON_DEMAND, itype, hours, row.cost1h, 0.0)
            self.install_instance_price(context, region, "on-demand-1m", itype, 1, row.cost1m, 0.0)
            self.install_instance_price(context, region, "ri-1y", itype, 1, row.cost1y_per_month, 0.0)
            self.install_instance_price(context, region, "ri-3y", itype, 1, row.cost3y_per_month, 0.0)
            self.install_instance_price(context, region, "ri-5y", itype, 1, row.cost5y_per_month, 0.0)
            self.install_instance_price(context, region, "ri-1y-upfront", itype, hours, row.cost1h, row.cost1y_uf_fee)
            self.install_instance_price(context, region, "ri-2y-upfront", itype, hours, row.cost1h, row.cost2y_uf_fee)
            self.install_instance_price(context, region, "ri-3y-upfront", itype, hours, row.cost1h, row.cost3y_uf_fee)

    def install_instance_type(self, context: UpdateContext, code: str, row: ComputeRow) -> InstanceType | None:
        if not context.is_enabled_type(code):
            return None
        itype = context.instance_types.get(code)
        if itype is None:
            itype = context.instance_types[code] = InstanceType(code=code)

        def _update(t: InstanceType) -> None:
            family = code.split(".")[0]
            burstable = family.startswith(_BURSTABLE_FAMILY)
            t.name = code
            t.cpu = row.cpu
            t.ram = int(round(row.ram * 1024))
            t.constant = not burstable
            t.auto_scale = True
            t.processor = _PROCESSOR
            t.cpu_rate = Rate.WORST if burstable else Rate.MEDIUM
            t.ram_rate = Rate.MEDIUM
            t.network_rate = Rate.WORST if burstable else Rate.MEDIUM
            t.storage_rate = Rate.MEDIUM

        return copy_as_needed(context, itype, _update, self.store.save_instance_type)

    def install_instance_price(
        self,
        context: UpdateContext,
        region: Region,
        term_code: str,
        itype: InstanceType,
        coeff: float,
        cost: float | None,
        initial_cost: float | None,
    ) -> None:
        """Write the prices of one term: every indexed OS/software add-on, plus the bare Linux price."""
        monthly = monthly_cost(coeff, cost)
        if monthly is None:
            # Term not offered for this row
            return
        definition = context.csv_terms.get(term_code)
        if definition is None:
            logger.warning("Unknown term %s, skipped", term_code)
            return
        term = install_price_term(context, definition, self.store.save_price_term)
        fee = initial_cost or 0.0

        for os, software, os_row in context.os_prices.entries(region.name, itype.code):
            combined = os_monthly_cost(term.code, term.period, monthly, os_row, context.hours_month)
            if combined is None:
                continue
            self.install_os_price(context, region, term, os, software, itype, combined, fee)

        if context.is_enabled_os(VmOs.LINUX):
            self.install_os_price(context, region, term, VmOs.LINUX, None, itype, monthly, fee)

    def install_os_price(
        self,
        context: UpdateContext,
        region: Region,
        term: PriceTerm,
        os: VmOs,
        software: str | None,
        itype: InstanceType,
        monthly: float,
        initial_cost: float,
    ) -> InstancePrice:
        code = "/".join((region.name, term.code, itype.code, os.value)).lower()
        price = context.previous.get(code)
        if price is None:
            price = context.previous[code] = InstancePrice(code=code)

        def _update(p: InstancePrice) -> None:
            p.location = region
            p.os = os
            p.software = software
            p.term = term
            p.tenancy = Tenancy.SHARED
            p.type = itype
            p.period = term.period

        copy_as_needed(context, price, _update)
        context.prices.add(code)

        def _set_cost(rounded: float, raw: float) -> None:
            price.initial_cost = initial_cost
            price.cost = rounded
            price.cost_period = period_cost(price.initial_cost, raw, price.term.period)

        save_as_needed(context, price, price.cost, monthly, _set_cost, self.store.save_instance_price)
        return price

    # ------------------------------------------------------------------
    # install-support
    # ------------------------------------------------------------------

    def install_support(self, context: UpdateContext) -> None:
        for definition in load_support_types():
            install_support_type(context, definition, self.store.save_support_type)
        for price in load_support_prices():
            if install_support_price(context, price, self.store.save_support_price) is None:
                logger.warning("Support price %s refers to unknown type %s", price.code, price.type)
