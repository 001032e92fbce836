"""
Output formatting module for the hydropad CLI.

This module handles formatted output for the CLI, supporting both:
- Human-readable text output with Rich tables
- Machine-readable JSON output for automation
"""

import json
import logging
import math
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..core.delineate import WatershedResult
from ..core.pipeline import AnalysisResult
from ..core.rainfall import RainfallResult

logger = logging.getLogger(__name__)


def _finite(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


def watershed_summary(result: WatershedResult, include_geometry: bool = False) -> dict:
    """Plain-dict view of a delineation result."""
    summary: dict = {
        "source": result.source,
        "comid": result.comid,
        "synthetic": result.is_synthetic,
        "area_sq_meters": result.area_sq_meters,
        "area_acres": result.area_acres,
        "failures": [{"tier": name, "reason": reason} for name, reason in result.failures],
    }
    if result.flowline is not None:
        summary["flowline"] = {
            "comid": result.flowline.comid,
            "method": result.flowline.method,
            "name": result.flowline.name,
            "snapped_lat": result.flowline.snapped_lat,
            "snapped_lon": result.flowline.snapped_lon,
            "distance_m": result.flowline.distance_m,
        }
    else:
        summary["flowline"] = None
    if include_geometry:
        summary["watershed"] = result.basin
    return summary


def rainfall_summary(result: RainfallResult) -> dict:
    """Plain-dict view of a rainfall lookup."""
    return {"source": result.source, "stale": result.stale, **result.table.to_dict()}


def analysis_summary(result: AnalysisResult) -> dict:
    """Plain-dict view of a full analysis."""
    return {
        "lat": result.lat,
        "lon": result.lon,
        "watershed": watershed_summary(result.watershed),
        "rainfall_source": result.rainfall.source,
        "rainfall_stale": result.rainfall.stale,
        "duration": result.duration,
        "ari": result.ari,
        "depth_in": _finite(result.depth_in),
        "intensity_in_hr": _finite(result.intensity_in_hr),
        "cn": result.cn,
        "runoff": {
            "runoff_depth_in": _finite(result.runoff.runoff_depth_in),
            "runoff_volume_acft": _finite(result.runoff.runoff_volume_acft),
            "runoff_coefficient": _finite(result.runoff.runoff_coefficient),
            "peak_flow_cfs": _finite(result.runoff.peak_flow_cfs),
        },
        "land_use": result.land_use,
    }


def _fmt(value: float | None, digits: int = 2) -> str:
    if value is None or not math.isfinite(value):
        return "-"
    return f"{value:,.{digits}f}"


class OutputFormatter:
    """
    Format CLI output as Rich text or JSON.

    Attributes:
        output_format: Output format ("text" or "json")
        quiet: Suppress non-essential text output
        verbose: Show per-tier failure details
    """

    def __init__(self, output_format: str = "text", quiet: bool = False, verbose: bool = False) -> None:
        if output_format not in ("text", "json"):
            raise ValueError(f"output_format must be 'text' or 'json', got '{output_format}'")

        self.output_format = output_format
        self.quiet = quiet
        self.verbose = verbose
        self.console = Console(file=sys.stdout, force_terminal=output_format == "text" and sys.stdout.isatty())

    def _print_json(self, payload: dict) -> None:
        print(json.dumps(payload, indent=2))

    def print_watershed(self, result: WatershedResult, include_geometry: bool = False) -> None:
        """Print a delineation result."""
        if self.output_format == "json":
            self._print_json(watershed_summary(result, include_geometry=include_geometry))
            return

        style = "bold yellow" if result.is_synthetic else "bold green"
        table = Table(show_header=False, box=None)
        table.add_row("Source", Text(result.source, style=style))
        table.add_row("COMID", result.comid or "-")
        table.add_row("Area", f"{_fmt(result.area_acres, 1)} ac ({_fmt(result.area_sq_meters / 1e6, 3)} km²)")
        if result.flowline is not None:
            label = result.flowline.name or result.flowline.comid
            table.add_row(
                "Snapped reach",
                f"{label} via {result.flowline.method}, {_fmt(result.flowline.distance_m, 0)} m away",
            )
        self.console.print(Panel(table, title="Watershed", expand=False))

        if result.is_synthetic and not self.quiet:
            self.console.print("[yellow]⚠ Every delineation service failed; showing a synthetic square basin.[/yellow]")

        if self.verbose and result.failures:
            for name, reason in result.failures:
                self.console.print(f"  [dim]{name}:[/dim] {reason}")
        logger.debug("Printed watershed result")

    def print_rainfall(self, result: RainfallResult) -> None:
        """Print a precipitation-frequency table."""
        if self.output_format == "json":
            self._print_json(rainfall_summary(result))
            return

        title = f"Rainfall depth (in), source: {result.source}"
        if result.stale:
            title += " (stale)"
        table = Table(title=title)
        table.add_column("Duration", style="cyan")
        for ari in result.table.aris:
            table.add_column(f"{ari}-yr", justify="right")
        for row in result.table.rows:
            table.add_row(row.label, *(_fmt(row.values.get(ari)) for ari in result.table.aris))
        self.console.print(table)

        if result.source == "synthetic" and not self.quiet:
            self.console.print("[yellow]⚠ NOAA was unavailable; depths are synthetic placeholders.[/yellow]")
        logger.debug("Printed rainfall table")

    def print_analysis(self, result: AnalysisResult) -> None:
        """Print a full analysis."""
        if self.output_format == "json":
            self._print_json(analysis_summary(result))
            return

        self.print_watershed(result.watershed)

        table = Table(show_header=False, box=None)
        rainfall_source = result.rainfall.source + (" (stale)" if result.rainfall.stale else "")
        table.add_row("Storm", f"{result.duration}, {result.ari}-yr ({rainfall_source})")
        table.add_row("Depth", f"{_fmt(result.depth_in)} in")
        table.add_row("Intensity", f"{_fmt(result.intensity_in_hr)} in/hr")
        table.add_row("Curve number", _fmt(result.cn, 0))
        table.add_row("Runoff depth", f"{_fmt(result.runoff.runoff_depth_in)} in")
        table.add_row("Runoff volume", f"{_fmt(result.runoff.runoff_volume_acft)} ac-ft")
        table.add_row("Runoff coefficient", _fmt(result.runoff.runoff_coefficient))
        table.add_row("Peak flow", f"{_fmt(result.runoff.peak_flow_cfs, 1)} cfs")
        self.console.print(Panel(table, title="Runoff", expand=False))

        if result.land_use:
            land_table = Table(title="Land cover")
            land_table.add_column("Category", style="cyan")
            land_table.add_column("%", justify="right")
            for name, pct in sorted(result.land_use.items(), key=lambda kv: -kv[1]):
                land_table.add_row(name, str(pct))
            self.console.print(land_table)
        logger.debug("Printed analysis result")

    def print_error(self, message: str, hint: str | None = None) -> None:
        """
        Print an error with an optional hint.

        Args:
            message: The main error message
            hint: Optional hint for fixing the error
        """
        if self.output_format == "json":
            error_obj = {"error": message}
            if hint:
                error_obj["hint"] = hint
            print(json.dumps(error_obj, indent=2), file=sys.stderr)
            return

        error_console = Console(file=sys.stderr)
        error_console.print(f"[red]Error:[/red] {message}")
        if hint:
            error_console.print(f"[yellow]Hint:[/yellow] {hint}")
