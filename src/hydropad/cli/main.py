"""
Main Typer CLI application for hydropad.

This module provides the command-line interface with three subcommands:
- delineate: Watershed for a point through the delineation cascade
- rainfall: NOAA precipitation-frequency table with fallbacks
- analyze: Delineation, rainfall, optional land use and runoff in one go

Western longitudes are negative; put ``--`` before the coordinates so they
are not read as options, e.g. ``hydropad delineate -- 40.44 -79.99``.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from hydropad.config import HydropadConfig, config_from_env, load_config
from hydropad.core.cache import SqliteStorage
from hydropad.core.delineate import DelineationError, delineate
from hydropad.core.pipeline import analyze
from hydropad.core.rainfall import RainfallError, fetch_rainfall, make_cache
from hydropad.core.swmm import subcatchment_from_watershed, write_swmm_inp
from hydropad.fetch import UpstreamError
from hydropad.fetch.http_client import open_session

from .output import OutputFormatter

# Initialize Typer app
app = typer.Typer(
    name="hydropad",
    help="Watershed delineation, rainfall frequency and runoff estimates from public hydrologic services",
    no_args_is_help=True,
    add_completion=False,
)

# Initialize Rich console for formatted output
console = Console()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

LatArg = Annotated[float, typer.Argument(help="Latitude in decimal degrees", min=-90, max=90)]
LonArg = Annotated[float, typer.Argument(help="Longitude in decimal degrees", min=-180, max=180)]
ConfigOpt = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="TOML configuration file (defaults to HYDROPAD_* environment variables)",
        exists=True,
        dir_okay=False,
    ),
]
OutputFormatOpt = Annotated[
    str,
    typer.Option("--output-format", help="Output format: text or json"),
]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")]
QuietOpt = Annotated[bool, typer.Option("--quiet", "-q", help="Only print results and errors")]


def _setup_logging(verbose: bool, quiet: bool) -> None:
    """
    Configure logging level based on verbosity flags.

    Args:
        verbose: Enable debug logging
        quiet: Suppress all logging except errors
    """
    if quiet:
        logging.getLogger().setLevel(logging.ERROR)
    elif verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        logging.getLogger().setLevel(logging.INFO)


def _load(config_file: Path | None) -> HydropadConfig:
    return load_config(config_file) if config_file else config_from_env()


def _formatter(output_format: str, quiet: bool, verbose: bool) -> OutputFormatter:
    if output_format not in ["text", "json"]:
        console.print(f"[red]Error:[/red] Invalid output format '{output_format}'. Must be 'text' or 'json'.")
        raise typer.Exit(2)
    return OutputFormatter(output_format=output_format, quiet=quiet, verbose=verbose)


def _run(coro, formatter: OutputFormatter):
    """Run a coroutine, mapping domain errors to exit codes."""
    try:
        return asyncio.run(coro)
    except DelineationError as e:
        formatter.print_error(str(e), hint="Check connectivity or enable the synthetic fallback")
        raise typer.Exit(1) from None
    except RainfallError as e:
        formatter.print_error(str(e), hint="NOAA coverage is limited to the US and its territories")
        raise typer.Exit(1) from None
    except UpstreamError as e:
        formatter.print_error(str(e))
        raise typer.Exit(1) from None
    except ValueError as e:
        formatter.print_error(str(e))
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        raise typer.Exit(130) from None


@app.command("delineate")
def delineate_command(
    lat: LatArg,
    lon: LonArg,
    geometry: Annotated[
        bool,
        typer.Option("--geometry", help="Include the basin GeoJSON in JSON output"),
    ] = False,
    config_file: ConfigOpt = None,
    output_format: OutputFormatOpt = "text",
    verbose: VerboseOpt = False,
    quiet: QuietOpt = False,
) -> None:
    """
    Delineate the watershed draining to a point.

    Tries StreamStats, the NLDI split catchment, the NLDI basin and the
    HydroShare catchment in turn, and finishes with a synthetic square basin.

    \b
    EXAMPLES:
        hydropad delineate -- 40.44 -79.99
        hydropad delineate --output-format json --geometry -- 40.44 -79.99
    """
    _setup_logging(verbose=verbose, quiet=quiet)
    formatter = _formatter(output_format, quiet, verbose)
    config = _load(config_file)

    async def _delineate():
        async with open_session(config.fetch) as session:
            return await delineate(session, lat, lon, config=config)

    result = _run(_delineate(), formatter)
    formatter.print_watershed(result, include_geometry=geometry)


@app.command("rainfall")
def rainfall_command(
    lat: LatArg,
    lon: LonArg,
    config_file: ConfigOpt = None,
    output_format: OutputFormatOpt = "text",
    verbose: VerboseOpt = False,
    quiet: QuietOpt = False,
) -> None:
    """
    Print the precipitation-frequency table for a point.

    Falls back to a synthetic table, then to the last cached NOAA table.

    \b
    EXAMPLES:
        hydropad rainfall -- 40.44 -79.99
    """
    _setup_logging(verbose=verbose, quiet=quiet)
    formatter = _formatter(output_format, quiet, verbose)
    config = _load(config_file)
    cache = make_cache(config.rainfall, storage=SqliteStorage(config.cache_db))

    async def _rainfall():
        async with open_session(config.fetch) as session:
            return await fetch_rainfall(
                session, lat, lon, cache=cache, settings=config.rainfall, endpoints=config.endpoints
            )

    result = _run(_rainfall(), formatter)
    formatter.print_rainfall(result)


@app.command("analyze")
def analyze_command(
    lat: LatArg,
    lon: LonArg,
    duration: Annotated[
        str | None,
        typer.Option("--duration", "-d", help="Storm duration label, e.g. '24-hr' (default: first row)"),
    ] = None,
    ari: Annotated[
        str | None,
        typer.Option("--ari", "-a", help="Recurrence interval in years, e.g. '100' (default: first column)"),
    ] = None,
    cn: Annotated[
        float | None,
        typer.Option("--cn", help="Curve number override", min=0, max=100),
    ] = None,
    land_use: Annotated[
        bool,
        typer.Option("--land-use", help="Sample NLCD land cover to derive a composite curve number"),
    ] = False,
    swmm: Annotated[
        Path | None,
        typer.Option("--swmm", help="Write a SWMM input file for the watershed", dir_okay=False),
    ] = None,
    config_file: ConfigOpt = None,
    output_format: OutputFormatOpt = "text",
    verbose: VerboseOpt = False,
    quiet: QuietOpt = False,
) -> None:
    """
    Delineate, look up rainfall and estimate runoff for a point.

    \b
    EXAMPLES:
        hydropad analyze -- 40.44 -79.99
        hydropad analyze --duration 24-hr --ari 100 --land-use -- 40.44 -79.99
        hydropad analyze --cn 80 --swmm watershed.inp -- 40.44 -79.99
    """
    _setup_logging(verbose=verbose, quiet=quiet)
    formatter = _formatter(output_format, quiet, verbose)
    config = _load(config_file)
    cache = make_cache(config.rainfall, storage=SqliteStorage(config.cache_db))

    async def _analyze():
        async with open_session(config.fetch) as session:
            return await analyze(
                session,
                lat,
                lon,
                config=config,
                cache=cache,
                duration=duration,
                ari=ari,
                cn=cn,
                sample_landuse=land_use,
            )

    result = _run(_analyze(), formatter)
    formatter.print_analysis(result)

    if swmm is not None:
        try:
            subcatchment = subcatchment_from_watershed(result.area_acres, result.cn)
        except ValueError as e:
            formatter.print_error(f"Cannot export SWMM file: {e}")
            raise typer.Exit(1) from None
        write_swmm_inp(subcatchment, swmm)
        if not quiet and output_format == "text":
            console.print(f"[green]✓[/green] SWMM input written to [cyan]{swmm}[/cyan]")


if __name__ == "__main__":
    app()
