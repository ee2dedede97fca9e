import logging
from pathlib import Path

import typer
from rich.logging import RichHandler

from fecatalog_cli import __version__
from fecatalog_cli.commands.catalog_cmd import prices, stats
from fecatalog_cli.commands.install_cmd import install, update
from fecatalog_cli.commands.prune_cmd import prune


def _version_callback(value: bool) -> None:
    if value:
        print(f"fecatalog {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="fecatalog",
    help="Flexible Engine price catalog synchronization",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version", callback=_version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    db: Path = typer.Option(None, "--db", help="Catalog database file"),
) -> None:
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json"] = json_output
    ctx.obj["db_path"] = db
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


app.command()(install)
app.command()(update)
app.command()(stats)
app.command()(prices)
app.command()(prune)
