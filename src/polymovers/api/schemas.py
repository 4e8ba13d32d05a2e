"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from polymovers.models.pipeline import PipelineDiagnostics


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. unknown_category, rate_limited")


# --- Markets ---
class TokenItem(BaseModel):
    outcome: str
    price: float
    winner: bool = False


class MarketItem(BaseModel):
    id: str
    question: str
    category: str
    current_price: float
    high: float
    low: float
    movement: float
    movement_pct: float = Field(..., description="Movement relative to the low, in percent")
    movement_band: str = Field(..., description="high / medium / low / minimal")
    movement_source: str
    volume_24h: float
    end_date: datetime | None = None
    slug: str | None = None
    tags: list[str] = Field(default_factory=list)
    tokens: list[TokenItem] = Field(default_factory=list)


class MarketsResponse(BaseModel):
    markets: list[MarketItem]
    total: int
    category: str
    last_updated: datetime | None = None
    error_reason: str | None = None
    error_message: str | None = None


class CategoriesResponse(BaseModel):
    categories: list[str]


class StatusResponse(BaseModel):
    markets: int
    last_updated: datetime | None = None
    error_reason: str | None = None
    error_message: str | None = None
    refresh_count: int = 0
    diagnostics: PipelineDiagnostics | None = None
