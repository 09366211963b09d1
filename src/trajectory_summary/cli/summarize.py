"""Summarize and config commands: sample tables in, summary tables and charts out."""

from dataclasses import fields
from pathlib import Path
from typing import List, Optional

import typer

from ..config import SummaryConfig, load_config
from ..errors import SummaryError
from ..pipeline import SummaryResult, summarize
from ..sources import ParquetDirectorySource


def write_tables(result: SummaryResult, output_dir: Path) -> List[Path]:
    """Write every table of ``result`` as ``<name>.parquet`` under ``output_dir``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, table in result.tables().items():
        path = output_dir / f"{name}.parquet"
        table.write_parquet(str(path))
        written.append(path)
    return written


def _print_result(result: SummaryResult, written: List[Path]) -> None:
    typer.echo("\nSummary")
    for name, table in result.tables().items():
        typer.echo(f"  {name:<17}: {table.height:,} rows × {table.width} columns")
    for path in written:
        typer.echo(f"✓ Wrote {path}")


def summarize_command(
    samples_dir: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        help="Directory with one <variable>.parquet file per sampled variable"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False,
        help="TOML file with summary options"
    ),
    output_dir: Path = typer.Option(
        Path("summary"), "--output-dir", "-o", help="Directory for the summary tables"
    ),
    observations_dir: Optional[Path] = typer.Option(
        None, "--observations", help="Directory with observed data, one file per variable"
    ),
    prior_dir: Optional[Path] = typer.Option(
        None, "--prior", exists=True, file_okay=False, help="Directory with prior samples"
    ),
    model_file: Optional[Path] = typer.Option(
        None, "--model", "-m", help="LibBi model file declaring the variables"
    ),
    pdf: Optional[Path] = typer.Option(
        None, "--pdf", help="Also write the charts to this PDF file"
    ),
    burn: Optional[int] = typer.Option(
        None, "--burn", "-b", help="Number of leading draws to discard"
    ),
    types: Optional[List[str]] = typer.Option(
        None, "--type", "-t", help="Category to summarize (state, noise, obs, param, logeval)"
    ),
) -> None:
    """Summarize the samples in SAMPLES_DIR.

    Options given on the command line override those from --config. One
    parquet file is written per table that has rows; categories without
    data are skipped.
    """
    try:
        config = load_config(config_file) if config_file else SummaryConfig()
        config = config.with_overrides(burn=burn, categories=types or None)

        source = ParquetDirectorySource(
            samples_dir, observations=observations_dir, time_dim=config.time_dim
        )
        prior = (
            ParquetDirectorySource(prior_dir, time_dim=config.time_dim) if prior_dir else None
        )

        typer.echo(f"Summarizing samples in {samples_dir}...")
        result = summarize(source, config, model=model_file, prior=prior)
        if result.is_empty():
            typer.echo("Nothing to summarize: no requested variable has data.", err=True)
            raise typer.Exit(1)

        written = write_tables(result, output_dir)
        if pdf is not None:
            from ..render import write_pdf
            written.append(write_pdf(result, pdf, title=f"Summary: {samples_dir.name}"))
        _print_result(result, written)
    except (SummaryError, ValueError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _format_option(value) -> str:
    if hasattr(value, "value"):
        return str(value.value)
    if isinstance(value, tuple):
        return "[" + ", ".join(_format_option(v) for v in value) + "]"
    if hasattr(value, "items"):
        items = ", ".join(f"{_format_option(k)} = {_format_option(v)}" for k, v in value.items())
        return "{" + items + "}"
    return repr(value) if isinstance(value, str) else str(value)


def config_command(
    config_file: Optional[Path] = typer.Argument(
        None, exists=True, dir_okay=False, help="TOML file with summary options"
    ),
) -> None:
    """Validate a configuration file and show the options it resolves to.

    Without a file the defaults are shown.
    """
    try:
        config = load_config(config_file) if config_file else SummaryConfig()
    except (SummaryError, ValueError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    for f in fields(config):
        if f.init:
            typer.echo(f"{f.name:<15} = {_format_option(getattr(config, f.name))}")
