"""Retry backoff for REST calls. Exponential on 429/5xx, honouring Retry-After when sent."""

from __future__ import annotations

import httpx


def backoff_delay(retries: int = 0, base_delay: float = 1.0, max_delay: float = 30.0) -> float:
    """Return delay in seconds before retry number `retries` (0-based). Exponential backoff."""
    return min(max_delay, base_delay * (2 ** retries))


def retry_after_seconds(exc: Exception) -> float | None:
    """Seconds from a Retry-After header on a 429/503 response, if present and numeric."""
    if not isinstance(exc, httpx.HTTPStatusError):
        return None
    value = exc.response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None
