"""trajectory-summary CLI entry point.

``ts summarize`` turns a directory of sample tables into summary tables and
charts; ``ts config`` shows the options a configuration file resolves to.
"""

import logging
import sys

import typer

from .summarize import config_command, summarize_command

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

app = typer.Typer(
    name="ts",
    help="Summaries and charts of stochastic simulation and inference runs",
    invoke_without_command=True,
)

app.command("summarize")(summarize_command)
app.command("config")(config_command)


@app.command("version")
def version():
    """Show the package version and the table and chart libraries in use."""
    import matplotlib
    import polars as pl

    from .. import __version__
    typer.echo(f"trajectory-summary version {__version__}")
    typer.echo(f"  polars {pl.__version__}, matplotlib {matplotlib.__version__}")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Log progress (-v) or every stage (-vv)"
    ),
):
    """Summaries and charts of stochastic simulation and inference runs."""
    if verbose:
        level = logging.DEBUG if verbose > 1 else logging.INFO
        logging.basicConfig(level=level, format=LOG_FORMAT)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        typer.echo("\nError: Missing command.", err=True)
        raise typer.Exit(1)


def cli_main():
    """Entry point of the ``ts`` script."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\nInterrupted", err=True)
        sys.exit(130)


if __name__ == "__main__":
    cli_main()
