"""
HTTP client for a tank's iSpindel feed (ThingSpeak-style channel feed).

GETs the tank's configured feed URL and returns the raw ``feeds`` list:

    {"channel": {...}, "feeds": [{"entry_id": 1, "created_at": "...",
                                  "field1": "...", ..., "field8": "..."}]}

The feed returns a rolling window of recent entries, so callers must expect
entries they have already stored.

Every failure (timeout, connection error, non-2xx status, non-JSON body,
unexpected shape) is raised as FetchFailed. Every request carries a timeout.

Feed URLs usually embed an API key in the query string; URLs are logged
with the query removed.

CHANGELOG:
- 2026-10-17: Enforce per-request timeout (STORY-006)
- 2026-10-17: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit, urlunsplit

import httpx

from backend.src.errors import FetchFailed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S: float = 15.0
"""Timeout in seconds for one feed request when none is configured."""


def redact_url(url: str) -> str:
    """Return the URL without query string or fragment, for logging."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid url>"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class FeedClient:
    """Fetches raw feed entries for a tank.

    Args:
        timeout_s: Timeout for the whole request in seconds.
        transport: Optional httpx transport, used by tests to serve
            canned responses without a network.

    Usage::

        client = FeedClient(timeout_s=15.0)
        entries = await client.fetch_entries(tank.spindel_api_url)
    """

    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_s)
        self._transport = transport

    async def fetch_entries(self, url: str) -> list[dict]:
        """Fetch the feed and return its entries in delivery order.

        Args:
            url: Full feed URL, including any embedded credentials.

        Returns:
            The list under the ``feeds`` key (empty when absent or null).
            Items are returned as delivered; validation is the
            normalizer's job.

        Raises:
            FetchFailed: On any transport, status or decoding problem.
        """
        safe_url = redact_url(url)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchFailed(safe_url, f"timeout: {exc!r}") from exc
        except httpx.HTTPError as exc:
            raise FetchFailed(safe_url, f"network error: {exc!r}") from exc

        if not response.is_success:
            raise FetchFailed(safe_url, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise FetchFailed(safe_url, "response body is not JSON") from exc

        if not isinstance(body, dict):
            raise FetchFailed(safe_url, "response body is not a JSON object")

        feeds = body.get("feeds")
        if feeds is None:
            logger.debug("Feed %s returned no 'feeds' key", safe_url)
            return []
        if not isinstance(feeds, list):
            raise FetchFailed(safe_url, "'feeds' is not a list")

        logger.debug("Fetched %d feed entries from %s", len(feeds), safe_url)
        return feeds
