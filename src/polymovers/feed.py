"""Refresh service - fetch, process, publish. Holds the last published result set."""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import BaseModel, Field

from polymovers.ingestion.errors import FetchError, FetchFailure
from polymovers.models.market import Market
from polymovers.models.pipeline import PipelineDiagnostics, ProcessOptions
from polymovers.pipeline.categorize import matches_category
from polymovers.pipeline.processor import HistoryProvider, MarketPipeline

log = structlog.get_logger(__name__)


class FeedSnapshot(BaseModel):
    """What the presentation layer reads: last good markets plus the outcome of the latest refresh."""

    markets: list[Market] = Field(default_factory=list)
    diagnostics: PipelineDiagnostics | None = None
    last_updated: datetime | None = None  # time of last successful refresh
    error_reason: str | None = None  # FetchFailure value of the latest refresh, if it failed
    error_message: str | None = None
    refresh_count: int = 0


class MarketFeed:
    """Runs the pipeline over freshly fetched records on each trigger.

    Runs never overlap: a trigger arriving mid-run waits for it, then runs. A successful run fully
    replaces the published set; a failed fetch keeps the previous set and records the reason.
    """

    def __init__(
        self,
        fetch: Callable[[], list[Any]],
        pipeline: MarketPipeline | None = None,
        options: ProcessOptions | None = None,
        history_provider: HistoryProvider | None = None,
    ) -> None:
        self._fetch = fetch
        self.pipeline = pipeline or MarketPipeline()
        self.options = options or ProcessOptions()
        self.history_provider = history_provider
        self._lock = threading.Lock()
        self._snapshot = FeedSnapshot()
        self._last_duration_sec: float | None = None

    @property
    def snapshot(self) -> FeedSnapshot:
        return self._snapshot

    def _record_failure(self, reason: str, message: str) -> FeedSnapshot:
        previous = self._snapshot
        self._snapshot = previous.model_copy(
            update={
                "error_reason": reason,
                "error_message": message,
                "refresh_count": previous.refresh_count + 1,
            }
        )
        return self._snapshot

    def refresh(self) -> FeedSnapshot:
        """Fetch and process once. Never raises; a failed run keeps the previous markets."""
        with self._lock:
            started = time.monotonic()
            previous = self._snapshot
            try:
                raw = self._fetch()
                result = self.pipeline.run(raw, self.options, self.history_provider)
            except FetchError as e:
                log.warning("refresh_failed", reason=e.reason.value, error=e.detail)
                return self._record_failure(e.reason.value, e.message)
            except Exception as e:
                log.exception("refresh_error", error=str(e))
                unknown = FetchError(FetchFailure.UNKNOWN, str(e))
                return self._record_failure(unknown.reason.value, unknown.message)
            self._snapshot = FeedSnapshot(
                markets=result.markets,
                diagnostics=result.diagnostics,
                last_updated=datetime.now(timezone.utc),
                refresh_count=previous.refresh_count + 1,
            )
            self._last_duration_sec = time.monotonic() - started
            log.info(
                "refresh_done",
                markets=len(result.markets),
                tier=result.diagnostics.selected_tier,
                duration_sec=round(self._last_duration_sec, 3),
            )
            return self._snapshot

    async def run(self, interval_sec: float, stop_event: asyncio.Event | None = None) -> None:
        """Refresh every interval_sec until stop_event is set. Each run completes before the next."""
        stop = stop_event or asyncio.Event()
        while not stop.is_set():
            try:
                await asyncio.to_thread(self.refresh)
            except Exception as e:
                log.warning("refresh_loop_error", error=str(e))
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_sec)
            except asyncio.TimeoutError:
                pass

    def markets_for(self, category: str | None = None) -> list[Market]:
        """Published markets, optionally narrowed to one category ('all' passes everything)."""
        return [m for m in self._snapshot.markets if matches_category(m.category, category)]

    def get_status(self) -> dict[str, Any]:
        """Return current status: market count, last update, last error, refresh count."""
        snap = self._snapshot
        return {
            "markets": len(snap.markets),
            "last_updated": snap.last_updated.isoformat() if snap.last_updated else None,
            "error_reason": snap.error_reason,
            "refresh_count": snap.refresh_count,
            "last_duration_sec": round(self._last_duration_sec, 3) if self._last_duration_sec is not None else None,
        }


def build_feed(settings: Any, client: Any | None = None) -> tuple[MarketFeed, Any]:
    """Feed wired to a PolymarketClient from settings. Returns (feed, client); caller closes client."""
    from polymovers.ingestion.polymarket.gamma import PolymarketClient

    client = client or PolymarketClient.from_settings(settings)
    history = client.price_history_for if settings.with_price_history else None
    feed = MarketFeed(
        fetch=lambda: client.fetch_raw_markets(limit=settings.fetch_limit),
        pipeline=MarketPipeline.from_settings(settings),
        options=settings.process_options,
        history_provider=history,
    )
    return feed, client
