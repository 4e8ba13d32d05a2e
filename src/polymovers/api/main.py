"""FastAPI backend for the browser dashboard."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from polymovers.api.schemas import (
    CategoriesResponse,
    ErrorResponse,
    HealthResponse,
    MarketItem,
    MarketsResponse,
    StatusResponse,
    TokenItem,
)
from polymovers.config import configure_logging, get_settings
from polymovers.feed import MarketFeed, build_feed
from polymovers.formatting import movement_band, movement_percentage
from polymovers.models.market import Market

log = structlog.get_logger(__name__)

# Set by run_api() so the module-level app picks up the chosen profile and config directory.
_config_profile: str | None = None
_config_dir: Path | None = None


def _market_item(m: Market) -> MarketItem:
    return MarketItem(
        id=m.id,
        question=m.question,
        category=m.category,
        current_price=m.current_price,
        high=m.high,
        low=m.low,
        movement=m.movement,
        movement_pct=movement_percentage(m),
        movement_band=movement_band(m.movement),
        movement_source=m.movement_source,
        volume_24h=m.volume_24h,
        end_date=m.end_date,
        slug=m.slug,
        tags=list(m.tags),
        tokens=[TokenItem(outcome=t.outcome, price=t.price, winner=t.winner) for t in m.tokens],
    )


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def _feed(request: Request) -> MarketFeed:
    return request.app.state.feed


def create_app(
    feed: MarketFeed | None = None,
    refresh_interval_sec: float | None = None,
    categories: tuple[str, ...] | None = None,
) -> FastAPI:
    """Build the API. Without an injected feed, one is built from settings at startup.

    refresh_interval_sec of 0 disables the background refresh loop (refresh via POST /refresh).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        interval = refresh_interval_sec
        if feed is None:
            settings = get_settings(_config_profile, _config_dir)
            configure_logging(settings)
            app.state.feed, client = build_feed(settings)
            if interval is None:
                interval = settings.refresh_interval_sec
        else:
            app.state.feed = feed
        app.state.categories = categories or app.state.feed.pipeline.categorizer.categories

        stop = asyncio.Event()
        task = None
        if interval:
            task = asyncio.create_task(app.state.feed.run(interval, stop_event=stop))

        yield

        stop.set()
        if task is not None:
            await task
        if client is not None:
            client.close()

    app = FastAPI(title="PolyMovers API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/categories", response_model=CategoriesResponse)
    def categories_list(request: Request) -> CategoriesResponse:
        return CategoriesResponse(categories=list(request.app.state.categories))

    @app.get(
        "/markets",
        response_model=MarketsResponse,
        responses={404: {"description": "Unknown category", "model": ErrorResponse}},
    )
    def markets_list(
        request: Request,
        category: str = Query("all", description="Category filter; 'all' returns every market"),
        limit: int | None = Query(None, ge=1, le=500),
    ):
        """Latest movers, movement descending, optionally narrowed to one category."""
        selected = category.lower()
        feed_ = _feed(request)
        snap = feed_.snapshot
        published = {m.category for m in snap.markets}
        if selected not in request.app.state.categories and selected not in published:
            return _error_json("unknown_category", f"Unknown category: {category}")
        markets = feed_.markets_for(category)
        total = len(markets)
        if limit is not None:
            markets = markets[:limit]
        return MarketsResponse(
            markets=[_market_item(m) for m in markets],
            total=total,
            category=selected,
            last_updated=snap.last_updated,
            error_reason=snap.error_reason,
            error_message=snap.error_message,
        )

    @app.get("/status", response_model=StatusResponse)
    def status(request: Request) -> StatusResponse:
        snap = _feed(request).snapshot
        return StatusResponse(
            markets=len(snap.markets),
            last_updated=snap.last_updated,
            error_reason=snap.error_reason,
            error_message=snap.error_message,
            refresh_count=snap.refresh_count,
            diagnostics=snap.diagnostics,
        )

    @app.post("/refresh", response_model=StatusResponse)
    async def refresh(request: Request) -> StatusResponse:
        """Run one refresh now (waits for an in-flight run first)."""
        feed_ = _feed(request)
        await asyncio.to_thread(feed_.refresh)
        return status(request)

    return app


app = create_app()


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
    config_dir: Path | None = None,
    **kwargs: Any,
) -> None:
    global _config_profile, _config_dir
    _config_profile = profile
    _config_dir = config_dir
    import uvicorn

    uvicorn.run("polymovers.api.main:app", host=host, port=port, reload=False, **kwargs)
