"""Textual TUI dashboard - movers table, category filter, periodic refresh."""

from __future__ import annotations

import asyncio
from typing import Any

from textual.app import App, ComposeResult
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Header, Static

from polymovers.feed import MarketFeed
from polymovers.formatting import movement_band, movement_percentage, price_as_percentage, truncate

BAND_STYLES = {"high": "red", "medium": "dark_orange", "low": "yellow", "minimal": "grey50"}
COLUMNS = ("Market", "Category", "Price", "24h High", "24h Low", "Movement", "Volume 24h")


class StatusPanel(Static):
    """Last refresh time, market count, category filter and error state."""

    status = reactive("Loading...")
    count = reactive(0)
    category = reactive("all")
    error = reactive("")

    def render(self) -> str:
        line = (
            f"[bold]Status[/] {self.status}  |  "
            f"Markets: {self.count}  |  "
            f"Category: {self.category}"
        )
        if self.error:
            line += f"  |  [red]{self.error}[/]"
        return line


class MoversTable(DataTable):
    """Markets sorted by 24h movement."""

    def on_mount(self) -> None:
        self.cursor_type = "row"
        self.add_columns(*COLUMNS)

    def show(self, feed: MarketFeed, category: str) -> int:
        self.clear()
        markets = feed.markets_for(category)
        for m in markets:
            band = BAND_STYLES[movement_band(m.movement)]
            self.add_row(
                truncate(m.question, 60),
                m.category,
                price_as_percentage(m.current_price),
                price_as_percentage(m.high),
                price_as_percentage(m.low),
                f"[{band}]{m.movement * 100:.1f}c ({movement_percentage(m):.1f}%)[/]",
                f"${m.volume_24h:,.0f}",
            )
        return len(markets)


class MoversTUI(App[None]):
    """PolyMovers TUI - biggest 24h price movements."""

    TITLE = "PolyMovers"
    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("c", "next_category", "Category"),
    ]

    def __init__(self, feed: MarketFeed, refresh_interval_sec: float = 60.0, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._feed = feed
        self._interval = refresh_interval_sec
        self._categories = feed.pipeline.categorizer.categories
        self._category_idx = 0

    @property
    def category(self) -> str:
        return self._categories[self._category_idx]

    def compose(self) -> ComposeResult:
        yield Header()
        yield StatusPanel(id="status")
        yield MoversTable(id="movers")
        yield Footer()

    def on_mount(self) -> None:
        self.run_worker(self._refresh(), group="refresh")
        if self._interval > 0:
            self.set_interval(self._interval, self.action_refresh)

    async def _refresh(self) -> None:
        self.query_one(StatusPanel).status = "Refreshing..."
        await asyncio.to_thread(self._feed.refresh)
        self._render_feed()

    def _render_feed(self) -> None:
        snap = self._feed.snapshot
        panel = self.query_one(StatusPanel)
        panel.status = (
            f"Updated {snap.last_updated.astimezone():%H:%M:%S}" if snap.last_updated else "No data"
        )
        panel.error = snap.error_message or ""
        panel.category = self.category
        panel.count = self.query_one(MoversTable).show(self._feed, self.category)

    def action_refresh(self) -> None:
        # Runs are serialized by the feed lock.
        self.run_worker(self._refresh(), group="refresh")

    def action_next_category(self) -> None:
        self._category_idx = (self._category_idx + 1) % len(self._categories)
        self._render_feed()


def run_tui(settings: Any) -> None:
    """Entry point: build feed from settings and run TUI."""
    from polymovers.feed import build_feed

    feed, client = build_feed(settings)
    try:
        MoversTUI(feed, refresh_interval_sec=settings.refresh_interval_sec).run()
    finally:
        client.close()
