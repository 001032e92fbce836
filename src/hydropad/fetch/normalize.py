"""
Response shape normalization for upstream payloads.

Upstream services and the bridging proxy return the same logical payload in
several shapes: raw GeoJSON, a JSON envelope ``{"contents": "<body>"}``,
named-result arrays, or an HTML error page served with a 200 status. The
functions here unwrap those shapes and validate that a GeoJSON
FeatureCollection (or tabular text) is actually present.
"""

import json
import logging
from typing import Any

from hydropad.fetch.exceptions import ShapeError
from hydropad.fetch.http_client import body_preview

logger = logging.getLogger(__name__)

ENVELOPE_FIELD = "contents"
MAX_ENVELOPE_DEPTH = 3

# Keys under which providers nest named results holding a FeatureCollection
NAMED_RESULT_KEYS = ("featurecollection", "results")


def _is_json_content_type(content_type: str | None) -> bool:
    return bool(content_type) and "json" in content_type.lower()


def _as_text(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def unwrap_envelope(value: Any, depth: int = 0) -> Any:
    """
    Recursively unwrap ``{"contents": "<json>"}`` proxy envelopes.

    Args:
        value: Parsed JSON value
        depth: Current recursion depth

    Returns:
        The innermost parsed value

    Raises:
        ShapeError: The envelope's contents are not valid JSON
    """
    if depth >= MAX_ENVELOPE_DEPTH:
        return value
    if isinstance(value, dict) and isinstance(value.get(ENVELOPE_FIELD), str):
        inner = value[ENVELOPE_FIELD]
        try:
            parsed = json.loads(inner)
        except json.JSONDecodeError as e:
            raise ShapeError(f"Proxy envelope did not contain valid JSON: {body_preview(inner)}") from e
        return unwrap_envelope(parsed, depth + 1)
    return value


def parse_json_body(raw: str | bytes, content_type: str | None = None) -> Any:
    """
    Parse a response body as JSON, unwrapping proxy envelopes.

    Args:
        raw: Response body
        content_type: Content-Type header value, used only for diagnostics

    Returns:
        Parsed (and unwrapped) JSON value

    Raises:
        ShapeError: The body is not JSON (typically an HTML error page)
    """
    text = _as_text(raw).lstrip("\ufeff")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        kind = "JSON" if _is_json_content_type(content_type) else f"'{content_type or 'unknown'}'"
        raise ShapeError(f"Expected JSON but received a {kind} body that does not parse: {body_preview(text)}") from e
    return unwrap_envelope(parsed)


def is_feature_collection(value: Any) -> bool:
    """True if value looks like a GeoJSON FeatureCollection."""
    return isinstance(value, dict) and value.get("type") == "FeatureCollection" and isinstance(value.get("features"), list)


def find_named_result(payload: Any, name: str | None) -> dict | None:
    """
    Locate a FeatureCollection nested in a named-result array.

    Providers such as StreamStats answer with
    ``{"featurecollection": [{"name": "globalwatershed", "feature": {...}}, ...]}``.
    The entry whose name matches is preferred; otherwise the first entry whose
    payload is a FeatureCollection is used.

    Returns:
        The nested FeatureCollection, or None if there is none
    """
    if not isinstance(payload, dict):
        return None

    for key in NAMED_RESULT_KEYS:
        entries = payload.get(key)
        if not isinstance(entries, list):
            continue

        candidates = [entry for entry in entries if isinstance(entry, dict)]
        if name is not None:
            for entry in candidates:
                if entry.get("name") == name:
                    inner = unwrap_envelope(entry.get("feature"))
                    if is_feature_collection(inner):
                        return inner
                    logger.debug(f"Named result '{name}' is present but holds no FeatureCollection")

        for entry in candidates:
            inner = unwrap_envelope(entry.get("feature"))
            if is_feature_collection(inner):
                return inner

    return None


def validate_feature_collection(value: Any, label: str = "Response") -> dict:
    """
    Assert that a parsed value is FeatureCollection-shaped.

    Raises:
        ShapeError: ``type`` is not FeatureCollection or ``features`` is not an array
    """
    if not isinstance(value, dict) or value.get("type") != "FeatureCollection":
        found = value.get("type") if isinstance(value, dict) else type(value).__name__
        raise ShapeError(
            f"{label} was not a GeoJSON FeatureCollection (found {found!r}): {body_preview(json.dumps(value, default=str))}"
        )
    if not isinstance(value.get("features"), list):
        raise ShapeError(
            f"{label} FeatureCollection is missing its features array: {body_preview(json.dumps(value, default=str))}"
        )
    return value


def normalize_feature_collection(
    raw: str | bytes,
    content_type: str | None = None,
    result_name: str | None = None,
    label: str = "Response",
) -> dict:
    """
    Parse a response body into a validated GeoJSON FeatureCollection.

    Args:
        raw: Response body (raw passthrough or proxy envelope)
        content_type: Content-Type header value
        result_name: Name of the entry to pick from a named-result array
        label: Service label used in error messages

    Returns:
        FeatureCollection dict whose ``features`` is a list

    Raises:
        ShapeError: The body is not JSON or holds no FeatureCollection
    """
    parsed = parse_json_body(raw, content_type)

    if isinstance(parsed, dict) and parsed.get("type") != "FeatureCollection":
        nested = find_named_result(parsed, result_name)
        if nested is not None:
            return nested

    return validate_feature_collection(parsed, label)


def normalize_text(raw: str | bytes, content_type: str | None = None) -> str:
    """
    Return the textual body of a response, unwrapping a JSON proxy envelope.

    Plain text passes through unchanged; a JSON object exposing a string
    ``contents`` field is replaced by that string.
    """
    text = _as_text(raw).lstrip("\ufeff")
    stripped = text.lstrip()
    if not stripped.startswith("{") and not _is_json_content_type(content_type):
        return text
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError:
        return text

    depth = 0
    while isinstance(parsed, dict) and isinstance(parsed.get(ENVELOPE_FIELD), str) and depth < MAX_ENVELOPE_DEPTH:
        text = parsed[ENVELOPE_FIELD]
        depth += 1
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            break
    return text
