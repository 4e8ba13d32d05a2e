"""PriceSample, MovementStats - price history and derived 24h movement."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PriceSample(BaseModel):
    """One price observation of a market's primary outcome."""

    model_config = ConfigDict(frozen=True)

    timestamp: float  # epoch seconds
    price: float = Field(..., ge=0, le=1)


class MovementStats(BaseModel):
    """Current price and the high/low band it travelled over the lookback window."""

    model_config = ConfigDict(frozen=True)

    current_price: float = 0.0
    high: float = 0.0
    low: float = 0.0
    movement: float = 0.0
    source: str = "history"  # "history" or "spread"
