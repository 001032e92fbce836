"""
SWMM input file export.

Writes a minimal EPA SWMM ``.inp`` model with a single subcatchment draining
to a free outfall. Sections are tab-separated tables with a ``;;`` header
row; their field order is what SWMM reads, so it must not change.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SUBCATCHMENT = "S1"
DEFAULT_OUTLET = "Out1"
DEFAULT_RAIN_GAGE = "RG1"
DEFAULT_SLOPE = 0.02
MAX_PCT_IMPERV = 99.0

OPTIONS = [
    ("FLOW_UNITS", "CFS"),
    ("INFILTRATION", "CURVE_NUMBER"),
    ("FLOW_ROUTING", "KINWAVE"),
    ("LINK_OFFSETS", "DEPTH"),
    ("START_DATE", "01/01/2024"),
    ("START_TIME", "00:00:00"),
    ("REPORT_START_DATE", "01/01/2024"),
    ("REPORT_START_TIME", "00:00:00"),
    ("END_DATE", "01/02/2024"),
    ("END_TIME", "00:00:00"),
    ("SWEEP_START", "01/01"),
    ("SWEEP_END", "12/31"),
    ("DRY_DAYS", "0"),
    ("REPORT_STEP", "00:15:00"),
    ("WET_STEP", "00:05:00"),
    ("DRY_STEP", "01:00:00"),
    ("ROUTING_STEP", "0:00:30"),
]


@dataclass
class SwmmSubcatchment:
    name: str
    area_ac: float
    pct_imperv: float
    width: float
    slope: float
    outlet: str
    cn: float


def subcatchment_from_watershed(area_ac: float, cn: float) -> SwmmSubcatchment:
    """
    Derive a subcatchment from watershed area and curve number.

    Imperviousness scales linearly from 0% at CN 30 to 100% at CN 100
    (capped at 99%); width is ``sqrt(area) * 100``.

    Raises:
        ValueError: Area or CN is not a finite number, or area is negative
    """
    if not math.isfinite(area_ac) or area_ac < 0:
        raise ValueError(f"Area must be a non-negative number of acres, got {area_ac}")
    if not math.isfinite(cn):
        raise ValueError(f"Curve number must be finite, got {cn}")

    pct_imperv = min(MAX_PCT_IMPERV, max(0.0, (cn - 30) / 70 * 100))
    return SwmmSubcatchment(
        name=DEFAULT_SUBCATCHMENT,
        area_ac=area_ac,
        pct_imperv=pct_imperv,
        width=math.sqrt(area_ac) * 100,
        slope=DEFAULT_SLOPE,
        outlet=DEFAULT_OUTLET,
        cn=cn,
    )


def format_swmm_inp(sub: SwmmSubcatchment) -> str:
    """Format a SWMM input file as plain text."""
    lines = ["[TITLE]", ";;Project Title", "Watershed Web Export", ""]

    lines += ["[OPTIONS]", ";;Option\tValue"]
    lines += [f"{option}\t{value}" for option, value in OPTIONS]
    lines.append("")

    lines += [
        "[SUBCATCHMENTS]",
        ";;Name\tRain Gage\tOutlet\tArea\t%Imperv\tWidth\tSlope\tCurbLen\tSnowPack",
        f"{sub.name}\t{DEFAULT_RAIN_GAGE}\t{sub.outlet}\t{sub.area_ac:.3f}\t{sub.pct_imperv:.1f}"
        f"\t{sub.width:.1f}\t{sub.slope:.3f}\t0\t0",
        "",
    ]
    lines += [
        "[SUBAREAS]",
        ";;Subcatchment\tN-Imperv\tN-Perv\tS-Imperv\tS-Perv\tPctZero\tRouteTo\tPctRouted",
        f"{sub.name}\t0.01\t0.1\t0.05\t0.05\t25\tOUTLET\t",
        "",
    ]
    lines += [
        "[INFILTRATION]",
        ";;Subcatchment\tCurveNum\tConductivity\tDryTime",
        f"{sub.name}\t{sub.cn:.1f}\t0.5\t7",
        "",
    ]
    lines += [
        "[OUTFALLS]",
        ";;Name\tElevation\tType\tStage Data\tGated\tRoute To",
        f"{sub.outlet}\t0\tFREE\t\tNO\t",
        "",
    ]
    lines += [
        "[RAINGAGES]",
        ";;Name\tFormat\tInterval\tSCF\tSource",
        f"{DEFAULT_RAIN_GAGE}\tVOLUME\t5:00\t1.0\t0",
    ]
    return "\n".join(lines)


def write_swmm_inp(sub: SwmmSubcatchment, output_path: Path) -> Path:
    """Write the input file, creating parent directories as needed."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(format_swmm_inp(sub), encoding="utf-8")
    logger.info(f"Wrote SWMM input file: {output_path}")
    return output_path
