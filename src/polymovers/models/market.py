"""Token, MarketRecord, Market - canonical entities."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Token(BaseModel):
    """Single outcome (e.g. Yes/No token) in a market."""

    model_config = ConfigDict(frozen=True)

    outcome: str = "Unknown"
    price: float = Field(0.5, ge=0, le=1, description="Probability/price in [0, 1]")
    winner: bool = False
    token_id: str | None = None  # CLOB token ID, needed for price history


DEFAULT_TOKEN = Token(outcome="Yes", price=0.5)


class MarketRecord(BaseModel):
    """Normalized market - what every raw record is reconciled into before scoring."""

    model_config = ConfigDict(frozen=True)

    id: str
    question: str
    description: str = ""
    end_date: datetime | None = None
    closed: bool = False
    archived: bool = False
    active: bool = True
    tags: tuple[str, ...] = ()
    tokens: tuple[Token, ...] = (DEFAULT_TOKEN,)
    volume_24h: float = Field(0.0, ge=0)
    liquidity: float = Field(0.0, ge=0)
    slug: str | None = None
    event_title: str | None = None


class Market(MarketRecord):
    """Scored market - record plus category and 24h movement. This is what callers render."""

    category: str = "other"
    current_price: float = Field(0.0, ge=0, le=1)
    high: float = Field(0.0, ge=0, le=1)
    low: float = Field(0.0, ge=0, le=1)
    movement: float = Field(0.0, ge=0, le=1)
    movement_source: str = "spread"  # "history" when observed prices were available
