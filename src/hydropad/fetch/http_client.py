"""
Resilient HTTP client for upstream geospatial and hydrologic services.

This module provides the single request path used by every upstream client.
A GET is first sent to a direct (or local reverse-proxy) URL; if that fails it
is wrapped through a third-party CORS-bridging proxy and retried with
exponential backoff. Every request races a timeout and, optionally, a caller
cancellation token, whichever fires first aborts it.
"""

import asyncio
import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from hydropad.config import FetchSettings
from hydropad.config.defaults import (
    DEFAULT_BACKOFF_S,
    DEFAULT_PROXY_BASE,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT_S,
    PREVIEW_LENGTH,
)
from hydropad.fetch.exceptions import FetchCancelled, FetchError

# Configure logging
logger = logging.getLogger(__name__)

JSON_ACCEPT = "application/geo+json, application/json;q=0.9, */*;q=0.5"
TEXT_ACCEPT = "text/plain, text/csv, text/html;q=0.8, */*;q=0.5"


def body_preview(text: str | None, limit: int = PREVIEW_LENGTH) -> str:
    """
    Collapse whitespace and truncate a response body for error messages.

    Args:
        text: Raw response body
        limit: Maximum number of characters to keep

    Returns:
        Single-line preview, suffixed with an ellipsis when truncated
    """
    collapsed = re.sub(r"\s+", " ", text or "").strip()
    if not collapsed:
        return "<no body>"
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[:limit] + "…"


def build_proxy_url(url: str, proxy_base: str = DEFAULT_PROXY_BASE) -> str:
    """Wrap a target URL as ``<proxy>?url=<percent-encoded-target>``."""
    return f"{proxy_base}?url={quote(url, safe='')}"


async def _wait(seconds: float) -> None:
    """Suspend for a backoff delay."""
    await asyncio.sleep(seconds)


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    timeout: float,
    headers: dict[str, str] | None = None,
    json_body: Any = None,
    cancel: asyncio.Event | None = None,
) -> httpx.Response:
    """
    Send one request, aborted by whichever of the timeout or the cancel token fires first.

    Raises:
        TimeoutError: The timeout elapsed
        FetchCancelled: The cancel token was set
        httpx.HTTPError: Transport-level failure
    """
    if cancel is not None and cancel.is_set():
        raise FetchCancelled(f"Request to {url} was cancelled before it was sent", url=url)

    async with asyncio.timeout(timeout):
        request = asyncio.ensure_future(client.request(method, url, headers=headers, json=json_body))
        if cancel is None:
            return await request

        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            request.cancel()
            cancelled.cancel()

        if request in done:
            return request.result()
        raise FetchCancelled(f"Request to {url} was cancelled by the caller", url=url)


def _response_error(response: httpx.Response, url: str, label: str) -> FetchError:
    preview = body_preview(response.text)
    return FetchError(
        f"{label} responded with {response.status_code}: {preview}",
        url=url,
        status=response.status_code,
        preview=preview,
    )


def _network_error(exc: Exception, url: str, label: str) -> FetchError:
    reason = "timed out" if isinstance(exc, TimeoutError) else (str(exc) or exc.__class__.__name__)
    return FetchError(f"{label} request failed: {reason}", url=url)


async def _send_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    label: str,
    timeout: float,
    retries: int,
    backoff: float,
    headers: dict[str, str] | None = None,
    json_body: Any = None,
    cancel: asyncio.Event | None = None,
) -> httpx.Response:
    """
    Attempt a request ``retries + 1`` times with exponential backoff.

    A non-success status counts as a failed attempt, exactly like a network
    error or timeout. After attempt ``n`` (zero-based) fails, the next attempt
    waits ``backoff * 2**n`` seconds; there is no wait after the final attempt.

    Raises:
        FetchError: Every attempt failed; carries the last status and body preview
        FetchCancelled: The cancel token was set (never retried)
    """
    last_error: FetchError | None = None

    for attempt in range(retries + 1):
        try:
            response = await _send(client, method, url, timeout, headers, json_body, cancel)
            if response.is_success:
                return response
            last_error = _response_error(response, url, label)
        except (httpx.HTTPError, TimeoutError) as e:
            last_error = _network_error(e, url, label)

        if attempt < retries:
            delay = backoff * 2**attempt
            logger.warning(f"{label} attempt {attempt + 1} failed: {last_error}. Retrying in {delay:.2f}s...")
            await _wait(delay)

    logger.error(f"{label} failed after {retries + 1} attempts: {last_error}")
    raise last_error


async def fetch_with_proxy(
    client: httpx.AsyncClient,
    url: str,
    direct_url: str | None = None,
    proxy_base: str = DEFAULT_PROXY_BASE,
    timeout: float = DEFAULT_TIMEOUT_S,
    retries: int = DEFAULT_RETRIES,
    backoff: float = DEFAULT_BACKOFF_S,
    headers: dict[str, str] | None = None,
    cancel: asyncio.Event | None = None,
) -> httpx.Response:
    """
    GET a resource, falling back from a direct URL to a CORS-bridging proxy.

    Args:
        client: Shared async HTTP client
        url: Target URL (what the proxy is asked to fetch)
        direct_url: Direct or local reverse-proxy URL tried once before the proxy
        proxy_base: Proxy endpoint taking the target as its ``url`` query parameter
        timeout: Per-request timeout in seconds
        retries: Extra proxy attempts after the first one
        backoff: Base backoff delay in seconds
        headers: Request headers for the direct request; not forwarded to the proxy
        cancel: Optional caller cancellation token

    Returns:
        The first success response

    Raises:
        FetchError: Direct request and every proxy attempt failed
        FetchCancelled: The cancel token was set
    """
    if direct_url:
        try:
            response = await _send(client, "GET", direct_url, timeout, headers, None, cancel)
            if response.is_success:
                return response
            direct_error = _response_error(response, direct_url, "Direct request")
        except (httpx.HTTPError, TimeoutError) as e:
            direct_error = _network_error(e, direct_url, "Direct request")
        logger.warning(f"{direct_error}. Falling back to proxy {proxy_base}")

    return await _send_with_retries(
        client,
        "GET",
        build_proxy_url(url, proxy_base),
        label="Proxy request",
        timeout=timeout,
        retries=retries,
        backoff=backoff,
        cancel=cancel,
    )


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: Any,
    timeout: float = DEFAULT_TIMEOUT_S,
    retries: int = DEFAULT_RETRIES,
    backoff: float = DEFAULT_BACKOFF_S,
    headers: dict[str, str] | None = None,
    cancel: asyncio.Event | None = None,
) -> httpx.Response:
    """
    POST a JSON payload with retry/backoff.

    The bridging proxy only relays GET requests, so POSTs always go to the
    target directly.
    """
    return await _send_with_retries(
        client,
        "POST",
        url,
        label="POST request",
        timeout=timeout,
        retries=retries,
        backoff=backoff,
        headers=headers,
        json_body=payload,
        cancel=cancel,
    )


@dataclass
class UpstreamSession:
    """An HTTP client bound to fetch settings and an optional cancel token."""

    client: httpx.AsyncClient
    settings: FetchSettings = field(default_factory=FetchSettings)
    cancel: asyncio.Event | None = None

    async def get(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        direct_url: str | None = None,
    ) -> httpx.Response:
        """GET through the resilient fetch path using this session's settings."""
        if direct_url is None and self.settings.try_direct:
            direct_url = url
        return await fetch_with_proxy(
            self.client,
            url,
            direct_url=direct_url,
            proxy_base=self.settings.proxy_base,
            timeout=timeout or self.settings.timeout_s,
            retries=self.settings.retries,
            backoff=self.settings.backoff_s,
            headers=headers,
            cancel=self.cancel,
        )

    async def post_json(self, url: str, payload: Any, timeout: float | None = None) -> httpx.Response:
        """POST JSON directly using this session's retry settings."""
        return await post_json(
            self.client,
            url,
            payload,
            timeout=timeout or self.settings.timeout_s,
            retries=self.settings.retries,
            backoff=self.settings.backoff_s,
            headers={"Accept": JSON_ACCEPT},
            cancel=self.cancel,
        )


@asynccontextmanager
async def open_session(
    settings: FetchSettings | None = None,
    cancel: asyncio.Event | None = None,
) -> AsyncIterator[UpstreamSession]:
    """
    Open an UpstreamSession backed by a fresh httpx.AsyncClient.

    Example:
        >>> async with open_session() as session:
        ...     response = await session.get("https://example.org/data.json")
    """
    settings = settings or FetchSettings()
    async with httpx.AsyncClient(
        timeout=settings.timeout_s,
        follow_redirects=True,
        headers={"User-Agent": settings.user_agent},
    ) as client:
        yield UpstreamSession(client=client, settings=settings, cancel=cancel)
