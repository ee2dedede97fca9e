"""Import the feeds, then delete the prices they no longer publish."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from fecatalog_cli.commands.install_cmd import run_import
from fecatalog_cli.utils import obj_of

console = Console()


def prune(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Delete the stored prices that are absent from the current feeds."""
    if not yes and not obj_of(ctx).get("json"):
        typer.confirm("Prices missing from the feeds will be deleted. Continue?", abort=True)
    run_import(ctx, force=False, prune=True)
