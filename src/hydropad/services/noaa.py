"""
NOAA Atlas 14 precipitation-frequency client.

Fetches the HDSC text product for a point and parses it into a depth table
keyed by duration label and average recurrence interval (ARI). The text
product carries a free-form preamble (author lists, dates, datum notes) so the
parser locates the ARI header and trusts only the trailing numbers on that
line, sized by the widest duration row.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from urllib.parse import urlencode

from hydropad.config.defaults import NOAA_HDSC_URL
from hydropad.fetch.exceptions import ShapeError
from hydropad.fetch.http_client import TEXT_ACCEPT, UpstreamSession, body_preview
from hydropad.fetch.normalize import normalize_text

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(r"\bARI\b|average recurrence interval", re.IGNORECASE)
DURATION_PATTERN = re.compile(
    r"^\s*(\d+(?:\.\d+)?)\s*[- ]?\s*(min|minute|minutes|hr|hour|hours|day|days)\s*:?\s*$",
    re.IGNORECASE,
)
ROW_PATTERN = re.compile(r"^(?P<label>[^:,]+?):\s*(?P<values>.*)$")
NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
TOKEN_SPLIT = re.compile(r"[\s,]+")


@dataclass
class RainfallRow:
    """Depths for one duration, keyed by ARI label. NaN marks an unparsed cell."""

    label: str
    values: dict[str, float] = field(default_factory=dict)

    def has_value(self) -> bool:
        return any(math.isfinite(v) for v in self.values.values())


@dataclass
class RainfallTable:
    """Depth-duration-frequency table in inches."""

    aris: list[str]
    rows: list[RainfallRow]

    def is_valid(self) -> bool:
        """At least one ARI and at least one row holding a parseable depth."""
        return bool(self.aris) and any(row.has_value() for row in self.rows)

    def durations(self) -> list[str]:
        return [row.label for row in self.rows]

    def row(self, label: str) -> RainfallRow | None:
        for row in self.rows:
            if row.label == label:
                return row
        return None

    def to_dict(self) -> dict:
        """JSON-safe form; NaN cells become None."""
        return {
            "aris": list(self.aris),
            "rows": [
                {
                    "label": row.label,
                    "values": {ari: (v if math.isfinite(v) else None) for ari, v in row.values.items()},
                }
                for row in self.rows
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RainfallTable":
        """Inverse of to_dict; None cells become NaN."""
        rows = []
        for raw_row in data.get("rows") or []:
            values = {
                str(ari): (float(v) if v is not None else math.nan) for ari, v in (raw_row.get("values") or {}).items()
            }
            rows.append(RainfallRow(label=str(raw_row["label"]), values=values))
        return cls(aris=[str(a) for a in data.get("aris") or []], rows=rows)


def is_duration_label(label: str) -> bool:
    """True for labels such as ``24-hr``, ``5 min``, ``2-day`` or ``1 day:``."""
    return DURATION_PATTERN.match(label) is not None


def _split_row(line: str) -> tuple[str, str] | None:
    match = ROW_PATTERN.match(line)
    if not match:
        return None
    return match.group("label").strip(), match.group("values").strip()


def _tokens(values_part: str) -> list[str]:
    return [t for t in TOKEN_SPLIT.split(values_part) if t]


def _to_float(token: str | None) -> float:
    if token is None:
        return math.nan
    try:
        value = float(token)
    except ValueError:
        return math.nan
    return value if math.isfinite(value) else math.nan


def _column_count(lines: list[str]) -> int:
    """Largest number of numeric tokens on any duration row; short rows are padded later."""
    counts = [0]
    for line in lines:
        parts = _split_row(line)
        if parts is None or not is_duration_label(parts[0]):
            continue
        counts.append(sum(1 for t in _tokens(parts[1]) if NUMBER_PATTERN.fullmatch(t)))
    return max(counts)


def parse_rainfall_text(text: str | None) -> RainfallTable | None:
    """
    Parse an HDSC precipitation-frequency text product.

    Args:
        text: Raw text body (CSV-like, possibly with a long preamble)

    Returns:
        RainfallTable, or None if no ARI header, no column count, duplicate
        ARI labels, or no row with a parseable depth was found

    Example:
        >>> table = parse_rainfall_text("ARI (years): 2, 10\\n24-hr: 3.1, 4.2")
        >>> table.row("24-hr").values["10"]
        4.2
    """
    s = (text or "").lstrip("\ufeff")
    s = s.replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.strip() for line in s.split("\n") if line.strip()]

    header_idx = next((i for i, line in enumerate(lines) if HEADER_PATTERN.search(line)), None)
    if header_idx is None:
        return None

    body = lines[header_idx + 1 :]
    n_columns = _column_count(body)
    if n_columns == 0:
        return None

    header_numbers = NUMBER_PATTERN.findall(lines[header_idx])
    if len(header_numbers) < n_columns:
        logger.debug(f"ARI header has {len(header_numbers)} numbers but rows carry {n_columns} columns")
        n_columns = len(header_numbers)
    if n_columns == 0:
        return None
    aris = header_numbers[-n_columns:]
    if len(set(aris)) != len(aris):
        logger.debug(f"ARI header yields duplicate intervals: {aris}")
        return None

    rows: list[RainfallRow] = []
    seen: set[str] = set()
    for line in body:
        parts = _split_row(line)
        if parts is None:
            continue
        label, values_part = parts
        if not is_duration_label(label) or label in seen:
            continue
        tokens = _tokens(values_part)
        values = {ari: _to_float(tokens[j] if j < len(tokens) else None) for j, ari in enumerate(aris)}
        rows.append(RainfallRow(label=label, values=values))
        seen.add(label)

    table = RainfallTable(aris=aris, rows=rows)
    return table if table.is_valid() else None


def build_rainfall_url(lat: float, lon: float, endpoint: str = NOAA_HDSC_URL) -> str:
    """
    Build the HDSC text-product URL for a point.

    Raises:
        ValueError: Latitude or longitude is not finite
    """
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValueError("Latitude and longitude must be finite numbers")
    params = {
        "lat": f"{lat:.6f}",
        "lon": f"{lon:.6f}",
        "data": "depth",
        "units": "english",
        "series": "pds",
    }
    return f"{endpoint}?{urlencode(params)}"


async def fetch_table(
    session: UpstreamSession,
    lat: float,
    lon: float,
    endpoint: str = NOAA_HDSC_URL,
) -> RainfallTable:
    """
    Fetch and parse the precipitation-frequency table for a point.

    Raises:
        FetchError: Every request attempt failed
        ShapeError: The response did not contain a parseable table
    """
    url = build_rainfall_url(lat, lon, endpoint)
    response = await session.get(url, headers={"Accept": TEXT_ACCEPT})
    text = normalize_text(response.content, response.headers.get("content-type"))

    table = parse_rainfall_text(text)
    if table is None:
        raise ShapeError(f"Failed to parse rainfall table from NOAA response: {body_preview(text)}")

    logger.info(f"NOAA table for ({lat}, {lon}): {len(table.rows)} durations x {len(table.aris)} ARIs")
    return table
