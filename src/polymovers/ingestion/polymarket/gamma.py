"""Polymarket Gamma/CLOB HTTP client - raw market discovery and price history."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from polymovers.ingestion.errors import FetchError, FetchFailure, classify_error, is_retryable
from polymovers.ingestion.rate_limit import backoff_delay, retry_after_seconds
from polymovers.models.market import MarketRecord
from polymovers.pipeline.movement import primary_token

log = structlog.get_logger(__name__)

GAMMA_API_BASE = "https://gamma-api.polymarket.com"
CLOB_API_BASE = "https://clob.polymarket.com"

# (name, query params) - merged and de-duplicated; a failing strategy is skipped.
FETCH_STRATEGIES: tuple[tuple[str, dict[str, Any]], ...] = (
    ("active_by_end_date", {"active": "true", "closed": "false", "archived": "false", "order": "endDate", "ascending": "true"}),
    ("future_by_end_date", {"archived": "false", "order": "endDate", "ascending": "false"}),
    ("broad", {"offset": 100}),
)


def _has_tags(raw: dict[str, Any]) -> bool:
    tags = raw.get("tags")
    return bool(tags) and tags != "[]"


def _flatten_event(event: dict[str, Any]) -> list[dict[str, Any]]:
    """Event with nested markets -> market records. Markets inherit tags/title/end date they lack."""
    out = []
    for market in event.get("markets") or []:
        if not isinstance(market, dict):
            continue
        merged = dict(market)
        if not _has_tags(merged) and event.get("tags"):
            merged["tags"] = event["tags"]
        if event.get("title") and not merged.get("eventTitle"):
            merged["eventTitle"] = event["title"]
        if not (merged.get("endDate") or merged.get("end_date_iso")) and event.get("endDate"):
            merged["endDate"] = event["endDate"]
        out.append(merged)
    return out


def extract_records(payload: Any) -> list[Any]:
    """Raw records from any supported response shape: list, {data: [...]}, event(s) with markets.

    Items are passed through as-is otherwise; validation is the normalizer's job.
    """
    if isinstance(payload, dict):
        if isinstance(payload.get("data"), list):
            items = payload["data"]
        elif isinstance(payload.get("markets"), list):
            items = [payload]
        else:
            return []
    elif isinstance(payload, list):
        items = payload
    else:
        return []
    records: list[Any] = []
    for item in items:
        if isinstance(item, dict) and "question" not in item and isinstance(item.get("markets"), list):
            records.extend(_flatten_event(item))
        else:
            records.append(item)
    return records


def _dedupe_key(raw: Any) -> str | None:
    if not isinstance(raw, dict):
        return None
    for field in ("market_slug", "slug", "condition_id", "conditionId", "id"):
        value = raw.get(field)
        if value:
            return f"{field}:{value}" if field not in ("market_slug", "slug") else f"slug:{value}"
    return None


def dedupe_records(records: list[Any]) -> list[Any]:
    """Drop repeats by market slug (falling back to ID), keeping first occurrence and order."""
    seen: set[str] = set()
    out = []
    for raw in records:
        key = _dedupe_key(raw)
        if key is not None:
            if key in seen:
                continue
            seen.add(key)
        out.append(raw)
    return out


class PolymarketClient:
    """Synchronous client for Gamma market listings and CLOB price history.

    Retries 429/5xx/connection failures with exponential backoff; every failure that escapes is
    a FetchError.
    """

    def __init__(
        self,
        gamma_base: str = GAMMA_API_BASE,
        clob_base: str = CLOB_API_BASE,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.gamma_base = gamma_base.rstrip("/")
        self.clob_base = clob_base.rstrip("/")
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> PolymarketClient:
        return cls(
            gamma_base=settings.gamma_api_base,
            clob_base=settings.clob_api_base,
            timeout=settings.request_timeout_sec,
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay_sec,
            **kwargs,
        )

    def __enter__(self) -> PolymarketClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        attempt = 0
        while True:
            try:
                resp = self._client.get(url, params=params)
                resp.raise_for_status()
                return resp.json()
            except (httpx.HTTPError, ValueError) as e:
                if attempt >= self.max_retries or not is_retryable(e):
                    raise classify_error(e) from e
                delay = retry_after_seconds(e)
                if delay is None:
                    delay = backoff_delay(attempt, self.retry_base_delay)
                log.warning("request_retry", url=url, attempt=attempt + 1, delay=delay, error=str(e))
                self._sleep(delay)
                attempt += 1

    def fetch_markets_page(self, params: dict[str, Any] | None = None, limit: int = 200) -> list[Any]:
        """One GET /markets call; returns raw records (events flattened)."""
        query = {"limit": limit, **(params or {})}
        payload = self._get_json(f"{self.gamma_base}/markets", params=query)
        if not isinstance(payload, (list, dict)):
            raise FetchError(FetchFailure.BAD_RESPONSE, f"unexpected payload type {type(payload).__name__}")
        return extract_records(payload)

    def fetch_raw_markets(
        self,
        limit: int = 200,
        strategies: tuple[tuple[str, dict[str, Any]], ...] = FETCH_STRATEGIES,
    ) -> list[Any]:
        """Run each fetch strategy, merge and de-duplicate. Raises FetchError only if all fail.

        When every strategy succeeds but returns nothing, a plain unfiltered call is tried once.
        """
        merged: list[Any] = []
        last_error: FetchError | None = None
        succeeded = 0
        for name, params in strategies:
            try:
                records = self.fetch_markets_page(params, limit=limit)
            except FetchError as e:
                log.warning("fetch_strategy_failed", strategy=name, reason=e.reason.value, error=e.detail)
                last_error = e
                continue
            succeeded += 1
            log.debug("fetch_strategy_done", strategy=name, count=len(records))
            merged.extend(records)
        if not succeeded and last_error is not None:
            raise last_error
        unique = dedupe_records(merged)
        if not unique:
            unique = dedupe_records(self.fetch_markets_page(limit=limit))
        log.info("markets_fetched", total=len(merged), unique=len(unique))
        return unique

    def fetch_price_history(self, token_id: str, interval: str = "1d", fidelity: int = 60) -> list[dict[str, Any]]:
        """CLOB price history for a token: [{"t": epoch_sec, "p": price}, ...]."""
        payload = self._get_json(
            f"{self.clob_base}/prices-history",
            params={"market": token_id, "interval": interval, "fidelity": fidelity},
        )
        if isinstance(payload, dict):
            history = payload.get("history")
            return history if isinstance(history, list) else []
        return payload if isinstance(payload, list) else []

    def price_history_for(self, market: MarketRecord) -> list[dict[str, Any]] | None:
        """History of the market's primary token, or None if unavailable. Failures are logged."""
        token = primary_token(market.tokens)
        if not token.token_id:
            return None
        try:
            return self.fetch_price_history(token.token_id)
        except FetchError as e:
            log.warning("price_history_failed", market_id=market.id, reason=e.reason.value)
            return None
