"""
Region-code resolution for StreamStats.

StreamStats is partitioned by US state, so a point must be turned into a
two-letter region code before the basin service can be called. The HTTP
reverse geocoder is asked first; when it fails or answers outside the US, the
offline reverse_geocoder library is consulted, which performs lookups without
requiring internet access.
"""

import asyncio
import logging
from urllib.parse import urlencode

import reverse_geocoder as rg

from hydropad.config.defaults import REVERSE_GEOCODE_URL
from hydropad.fetch.exceptions import FetchCancelled, UpstreamError
from hydropad.fetch.http_client import JSON_ACCEPT, UpstreamSession
from hydropad.fetch.normalize import parse_json_body

logger = logging.getLogger(__name__)

US_STATE_CODES = {
    "Alabama": "AL",
    "Alaska": "AK",
    "Arizona": "AZ",
    "Arkansas": "AR",
    "California": "CA",
    "Colorado": "CO",
    "Connecticut": "CT",
    "Delaware": "DE",
    "District of Columbia": "DC",
    "Washington, D.C.": "DC",
    "Florida": "FL",
    "Georgia": "GA",
    "Hawaii": "HI",
    "Idaho": "ID",
    "Illinois": "IL",
    "Indiana": "IN",
    "Iowa": "IA",
    "Kansas": "KS",
    "Kentucky": "KY",
    "Louisiana": "LA",
    "Maine": "ME",
    "Maryland": "MD",
    "Massachusetts": "MA",
    "Michigan": "MI",
    "Minnesota": "MN",
    "Mississippi": "MS",
    "Missouri": "MO",
    "Montana": "MT",
    "Nebraska": "NE",
    "Nevada": "NV",
    "New Hampshire": "NH",
    "New Jersey": "NJ",
    "New Mexico": "NM",
    "New York": "NY",
    "North Carolina": "NC",
    "North Dakota": "ND",
    "Ohio": "OH",
    "Oklahoma": "OK",
    "Oregon": "OR",
    "Pennsylvania": "PA",
    "Rhode Island": "RI",
    "South Carolina": "SC",
    "South Dakota": "SD",
    "Tennessee": "TN",
    "Texas": "TX",
    "Utah": "UT",
    "Vermont": "VT",
    "Virginia": "VA",
    "Washington": "WA",
    "West Virginia": "WV",
    "Wisconsin": "WI",
    "Wyoming": "WY",
    "Puerto Rico": "PR",
}


def region_from_subdivision(code: str | None) -> str | None:
    """Turn an ISO 3166-2 code such as ``US-PA`` into ``PA``; None outside the US."""
    if not code or not isinstance(code, str):
        return None
    country, _, subdivision = code.strip().upper().partition("-")
    if country != "US" or len(subdivision) != 2 or not subdivision.isalpha():
        return None
    return subdivision


def offline_region_code(lat: float, lon: float) -> str | None:
    """
    Resolve a US state code with offline reverse geocoding.

    Uses the reverse_geocoder library, whose results carry the country code
    in ``cc`` and the first-level admin name (the state) in ``admin1``.

    Example:
        >>> offline_region_code(40.44, -79.99)
        'PA'
    """
    results = rg.search((lat, lon))
    if not results:
        return None

    result = results[0]
    country_code = result.get("cc", "")
    if country_code == "PR":
        return "PR"
    if country_code != "US":
        return None
    return US_STATE_CODES.get(result.get("admin1", ""))


async def fetch_region_code(
    session: UpstreamSession,
    lat: float,
    lon: float,
    endpoint: str = REVERSE_GEOCODE_URL,
    timeout: float | None = None,
) -> str | None:
    """
    Resolve the StreamStats region code for a point.

    Returns:
        Two-letter region code, or None if the point is not in a supported region
    """
    params = {"latitude": str(lat), "longitude": str(lon), "localityLanguage": "en"}
    try:
        response = await session.get(f"{endpoint}?{urlencode(params)}", headers={"Accept": JSON_ACCEPT}, timeout=timeout)
        payload = parse_json_body(response.content, response.headers.get("content-type"))
        if isinstance(payload, dict):
            rcode = region_from_subdivision(payload.get("principalSubdivisionCode"))
            if rcode:
                logger.info(f"Reverse geocoded ({lat}, {lon}) to region {rcode}")
                return rcode
    except FetchCancelled:
        raise
    except UpstreamError as e:
        logger.warning(f"Reverse geocoding service failed for ({lat}, {lon}): {e}")

    loop = asyncio.get_running_loop()
    try:
        rcode = await loop.run_in_executor(None, offline_region_code, lat, lon)
    except (OSError, ValueError, IndexError) as e:
        logger.warning(f"Offline reverse geocoding failed for ({lat}, {lon}): {e}")
        return None

    if rcode:
        logger.info(f"Offline reverse geocoding resolved ({lat}, {lon}) to region {rcode}")
    return rcode
