from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from fecatalog_cli.project import project_settings
from fecatalog_cli.utils import handle_error, obj_of

console = Console()


def _store(ctx: typer.Context):
    from fecatalog.catalog.store import CatalogStore

    settings = project_settings(obj_of(ctx))
    return CatalogStore(settings.db_path, node=settings.node)


def stats(ctx: typer.Context) -> None:
    """Show the entity counts of the catalog node."""
    try:
        store = _store(ctx)
        counts = store.get_stats()
        last_import = store.get_metadata("import:last")
    except Exception as e:
        handle_error(ctx, e)
        return

    if obj_of(ctx).get("json"):
        print(json.dumps({"node": store.node, "last_import": last_import, **vars(counts)}, indent=2))
        return

    table = Table(title=f"Catalog: {store.node}")
    table.add_column("Entity", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Locations", str(counts.locations))
    table.add_row("Instance types", str(counts.instance_types))
    table.add_row("Price terms", str(counts.price_terms))
    table.add_row("Instance prices", str(counts.instance_prices))
    table.add_row("Support types", str(counts.support_types))
    table.add_row("Support prices", str(counts.support_prices))
    console.print(table)

    if counts.by_term:
        terms = Table(title="Prices by term")
        terms.add_column("Term", style="cyan")
        terms.add_column("Prices", justify="right")
        for code, n in counts.by_term.items():
            terms.add_row(code, str(n))
        console.print(terms)

    console.print(f"[dim]Last import: {last_import or 'never'}[/dim]")


def prices(
    ctx: typer.Context,
    location: Annotated[str | None, typer.Option("--location", "-l", help="Region code, e.g. eu-west-0")] = None,
    term: Annotated[str | None, typer.Option("--term", "-t", help="Term code, e.g. on-demand")] = None,
    os: Annotated[str | None, typer.Option("--os", help="Operating system: linux, windows, rhel, suse")] = None,
    instance_type: Annotated[str | None, typer.Option("--type", help="Instance type code fragment")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum number of prices")] = 50,
) -> None:
    """List the stored instance prices, cheapest first."""
    try:
        results = _store(ctx).search_prices(
            location=location, term=term, os=os, instance_type=instance_type, limit=limit
        )
    except Exception as e:
        handle_error(ctx, e)
        return

    if obj_of(ctx).get("json"):
        print(json.dumps({"prices": results}, default=str))
        return

    if not results:
        console.print("[yellow]No prices found.[/yellow]")
        return

    table = Table(title="Instance prices")
    table.add_column("Code", style="cyan")
    table.add_column("vCPU", justify="right")
    table.add_column("RAM (MB)", justify="right")
    table.add_column("Software")
    table.add_column("Monthly", justify="right")
    table.add_column("Upfront", justify="right")
    table.add_column("Period total", justify="right")

    for item in results:
        table.add_row(
            item["code"],
            f"{item['cpu']:g}",
            str(item["ram"]),
            item.get("software") or "-",
            f"{item['cost']:,.3f}" if item.get("cost") is not None else "-",
            f"{item['initial_cost']:,.2f}" if item.get("initial_cost") else "-",
            f"{item['cost_period']:,.2f}" if item.get("cost_period") is not None else "-",
        )

    console.print(table)
