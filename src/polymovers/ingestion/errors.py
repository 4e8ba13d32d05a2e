"""Typed transport failures. Callers see a reason and a user-describable message, never httpx."""

from __future__ import annotations

from enum import Enum

import httpx


class FetchFailure(str, Enum):
    NETWORK_UNREACHABLE = "network_unreachable"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    BAD_RESPONSE = "bad_response"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    FetchFailure.NETWORK_UNREACHABLE: "Unable to connect to Polymarket API. Please check your internet connection.",
    FetchFailure.RATE_LIMITED: "API rate limit exceeded. Please try again in a few minutes.",
    FetchFailure.SERVER_ERROR: "Polymarket API is experiencing issues. Please try again later.",
    FetchFailure.BAD_RESPONSE: "Polymarket API returned a response that could not be read.",
    FetchFailure.UNKNOWN: "Failed to fetch markets.",
}


class FetchError(Exception):
    """Upstream fetch failed for a classified reason."""

    def __init__(self, reason: FetchFailure, detail: str = "", status_code: int | None = None) -> None:
        self.reason = reason
        self.detail = detail
        self.status_code = status_code
        super().__init__(self.message)

    @property
    def message(self) -> str:
        base = USER_MESSAGES[self.reason]
        if self.reason is FetchFailure.UNKNOWN and self.detail:
            return f"{base[:-1]}: {self.detail}"
        return base


def classify_error(exc: Exception) -> FetchError:
    """Map an httpx (or decoding) exception to a FetchError."""
    if isinstance(exc, FetchError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return FetchError(FetchFailure.RATE_LIMITED, str(exc), status)
        if status >= 500:
            return FetchError(FetchFailure.SERVER_ERROR, str(exc), status)
        return FetchError(FetchFailure.UNKNOWN, f"HTTP {status}", status)
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError)):
        return FetchError(FetchFailure.NETWORK_UNREACHABLE, str(exc))
    if isinstance(exc, ValueError):
        return FetchError(FetchFailure.BAD_RESPONSE, str(exc))
    return FetchError(FetchFailure.UNKNOWN, str(exc))


def is_retryable(exc: Exception) -> bool:
    """429, 5xx and connection-level failures are worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError))
