"""
Runoff estimates.

Simple NRCS curve number and rational method calculations for runoff depth,
volume and peak discharge. They do not model routing or timing; export to
SWMM for that.
"""

import math
import re
from dataclasses import dataclass

RATIONAL_FACTOR = 1.008  # (ft³/s) per (in/hr · ac)

_DURATION_UNITS = {
    "min": 1 / 60,
    "minute": 1 / 60,
    "minutes": 1 / 60,
    "hr": 1.0,
    "hour": 1.0,
    "hours": 1.0,
    "day": 24.0,
    "days": 24.0,
}
_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*[- ]?\s*([a-z]+)\s*:?\s*$", re.IGNORECASE)


@dataclass
class RunoffResult:
    runoff_depth_in: float
    runoff_volume_acft: float
    runoff_coefficient: float
    peak_flow_cfs: float


def runoff_depth_cn(p: float, cn: float) -> float:
    """
    Runoff depth in inches by the NRCS curve number method.

    ``S = 1000/CN - 10``, ``Ia = 0.2 S`` and ``Q = (P - Ia)² / (P - Ia + S)``
    when ``P > Ia``. A CN of 100 turns all rainfall into runoff.

    Args:
        p: Rainfall depth in inches
        cn: Curve number (typically 30 to 100)
    """
    if not math.isfinite(p) or p <= 0 or not math.isfinite(cn) or cn <= 0 or cn > 100:
        return 0.0
    if cn == 100:
        return p
    s = 1000 / cn - 10
    ia = 0.2 * s
    if p <= ia:
        return 0.0
    return (p - ia) ** 2 / (p - ia + s)


def runoff_volume_acft(area_ac: float, depth_in: float) -> float:
    """Runoff volume in acre-feet."""
    return area_ac * depth_in / 12


def rational_peak_cfs(intensity_in_hr: float, coefficient: float, area_ac: float) -> float:
    """Rational method peak discharge ``Q = C i A`` in ft³/s; 0 for non-finite inputs."""
    if not all(math.isfinite(v) for v in (intensity_in_hr, coefficient, area_ac)):
        return 0.0
    return intensity_in_hr * coefficient * area_ac * RATIONAL_FACTOR


def duration_hours(label: str) -> float | None:
    """Hours in a duration label such as ``24-hr``, ``30 min`` or ``2-day``; None if unparseable."""
    match = _DURATION.match(label or "")
    if not match:
        return None
    factor = _DURATION_UNITS.get(match.group(2).lower())
    if factor is None:
        return None
    hours = float(match.group(1)) * factor
    return hours if hours > 0 else None


def compute_runoff(p_depth_in: float, intensity_in_hr: float | None, cn: float, area_ac: float) -> RunoffResult:
    """
    Full runoff computation for one storm.

    The runoff coefficient is runoff depth over rainfall depth. Peak flow is
    0 when intensity is unknown.
    """
    depth = runoff_depth_cn(p_depth_in, cn)
    volume = runoff_volume_acft(area_ac, depth)
    coefficient = depth / p_depth_in if math.isfinite(p_depth_in) and p_depth_in > 0 else 0.0
    peak = rational_peak_cfs(intensity_in_hr, coefficient, area_ac) if intensity_in_hr is not None else 0.0
    return RunoffResult(
        runoff_depth_in=depth,
        runoff_volume_acft=volume,
        runoff_coefficient=coefficient,
        peak_flow_cfs=peak,
    )
