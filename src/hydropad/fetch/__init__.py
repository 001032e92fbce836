"""
Resilient data acquisition for upstream geospatial services.

This module provides:
- A GET path with direct-then-proxy fallback, retries and exponential backoff
- Timeout and caller-cancellation composition for every request
- Normalization of proxy envelopes and named-result payloads into GeoJSON
"""

from .exceptions import FetchCancelled, FetchError, ShapeError, SnapError, UpstreamError
from .http_client import (
    UpstreamSession,
    body_preview,
    build_proxy_url,
    fetch_with_proxy,
    open_session,
    post_json,
)
from .normalize import (
    find_named_result,
    is_feature_collection,
    normalize_feature_collection,
    normalize_text,
    parse_json_body,
    unwrap_envelope,
    validate_feature_collection,
)

__all__ = [
    # Errors
    "UpstreamError",
    "FetchError",
    "FetchCancelled",
    "ShapeError",
    "SnapError",
    # HTTP
    "UpstreamSession",
    "open_session",
    "fetch_with_proxy",
    "post_json",
    "build_proxy_url",
    "body_preview",
    # Normalization
    "parse_json_body",
    "unwrap_envelope",
    "find_named_result",
    "is_feature_collection",
    "validate_feature_collection",
    "normalize_feature_collection",
    "normalize_text",
]
