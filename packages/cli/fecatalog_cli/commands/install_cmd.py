"""Import the Flexible Engine price feeds into the local catalog."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from fecatalog_cli.project import project_settings
from fecatalog_cli.utils import handle_error, obj_of

console = Console()


def run_import(ctx: typer.Context, force: bool = False, prune: bool = False) -> None:
    """Run one import and report its outcome as a table or JSON."""
    try:
        from fecatalog.catalog.refresh import refresh_catalog

        settings = project_settings(obj_of(ctx))
        with console.status(f"Importing {settings.prices_url}...") as spinner:

            def _on_step(status) -> None:
                spinner.update(f"{status.phase} ({status.done}/{status.workload})...")

            result = refresh_catalog(force=force, settings=settings, on_step=_on_step, prune=prune)

        status = result.status
        if obj_of(ctx).get("json"):
            data = {
                "node": result.node,
                "force": result.force,
                "phase": status.phase,
                "done": status.done,
                "workload": status.workload,
                "locations": status.locations,
                "instance_types": status.instance_types,
                "price_terms": status.price_terms,
                "instance_prices": result.instance_prices,
                "support_prices": status.support_prices,
                "touched": result.touched,
                "writes": result.writes,
                "pruned": result.pruned,
            }
            print(json.dumps(data, indent=2))
            return

        table = Table(title=f"Import: {result.node}", show_header=True, header_style="bold")
        table.add_column("Entity")
        table.add_column("Count", justify="right")
        table.add_row("Locations", str(status.locations))
        table.add_row("Instance types", str(status.instance_types))
        table.add_row("Price terms", str(status.price_terms))
        table.add_row("Instance prices", str(result.instance_prices))
        table.add_row("Support prices", str(status.support_prices))
        console.print(table)

        suffix = " [dim](forced)[/dim]" if force else ""
        console.print(
            f"[green]Done.[/green] {result.touched} prices seen, {result.writes} writes, "
            f"{result.unchanged} unchanged{suffix}"
        )
        if prune:
            console.print(f"Pruned {result.pruned} stale price(s)")

    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)


def install(ctx: typer.Context) -> None:
    """Install or refresh the catalog, keeping manual edits of existing entries."""
    run_import(ctx, force=False)


def update(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Also rewrite the descriptive attributes of existing entries"),
    ] = False,
) -> None:
    """Update the catalog from the price feeds."""
    run_import(ctx, force=force)
