"""24h movement: from genuine price history, or estimated from the token price spread."""

from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from typing import Any

from polymovers.models.market import MarketRecord, Token
from polymovers.models.movement import MovementStats, PriceSample
from polymovers.pipeline.normalize import parse_datetime, parse_float

PRIMARY_OUTCOME_MARKERS = ("yes", "win")
SINGLE_TOKEN_SPREAD = 0.1
SPREAD_MULTIPLIER = 1.5
MIN_VARIATION = 0.05
MAX_VARIATION = 0.20
PRECISION = 4

ZERO_MOVEMENT = MovementStats()


def _timestamp(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            dt = parse_datetime(value)
            return dt.timestamp() if dt is not None else None
    dt = parse_datetime(value)
    return dt.timestamp() if dt is not None else None


def parse_price_samples(raw_samples: Iterable[Any]) -> list[PriceSample]:
    """Samples as PriceSample, {timestamp, price} or CLOB {t, p}. Unusable entries are skipped."""
    samples = []
    for entry in raw_samples or []:
        if isinstance(entry, PriceSample):
            samples.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        ts = _timestamp(entry.get("timestamp", entry.get("t")))
        price = parse_float(entry.get("price", entry.get("p")), default=-1.0)
        if ts is None or not 0 <= price <= 1:
            continue
        samples.append(PriceSample(timestamp=ts, price=price))
    return samples


def _stats(current: float, high: float, low: float, source: str = "history") -> MovementStats:
    """Round to 4dp, keeping low <= current <= high and movement == high - low."""
    high_r = round(high, PRECISION)
    low_r = round(low, PRECISION)
    current_r = min(max(round(current, PRECISION), low_r), high_r)
    return MovementStats(
        current_price=current_r,
        high=high_r,
        low=low_r,
        movement=round(high_r - low_r, PRECISION),
        source=source,
    )


def movement_from_history(samples: Sequence[PriceSample]) -> MovementStats:
    """High/low over the samples; current is the latest sample. Empty history -> all zeros."""
    if not samples:
        return ZERO_MOVEMENT
    ordered = sorted(samples, key=lambda s: s.timestamp)
    prices = [s.price for s in ordered]
    return _stats(prices[-1], max(prices), min(prices))


def primary_token(tokens: Sequence[Token]) -> Token:
    """The Yes-like token (outcome containing 'yes' or 'win'), else the first one."""
    for token in tokens:
        outcome = token.outcome.lower()
        if any(marker in outcome for marker in PRIMARY_OUTCOME_MARKERS):
            return token
    return tokens[0]


def token_spread(tokens: Sequence[Token]) -> float:
    if len(tokens) < 2:
        return SINGLE_TOKEN_SPREAD
    prices = [t.price for t in tokens]
    return max(prices) - min(prices)


def base_variation(spread: float) -> float:
    return max(MIN_VARIATION, min(MAX_VARIATION, spread * SPREAD_MULTIPLIER))


def movement_from_spread(tokens: Sequence[Token], rng: random.Random | None = None) -> MovementStats:
    """Estimate a 24h band around the primary token price from the spread across token prices.

    With an rng the half-width is |U(-0.5, 0.5)| * base variation; without one it is the
    deterministic upper bound, base / 2. High is capped at 1 and low floored at 0.
    """
    if not tokens:
        return MovementStats(source="spread")
    current = primary_token(tokens).price
    base = base_variation(token_spread(tokens))
    if rng is not None:
        variation = abs(rng.uniform(-0.5, 0.5)) * base
    else:
        variation = base / 2
    high = min(1.0, current + variation)
    low = max(0.0, current - variation)
    return _stats(current, high, low, source="spread")


class MovementEstimator:
    """Chooses history mode when samples exist, spread estimation otherwise."""

    def __init__(self, jitter: bool = True, seed: int | str | None = None) -> None:
        self.jitter = jitter
        self.seed = seed

    def rng_for(self, market_id: str) -> random.Random | None:
        """Per-record generator; seeded from (seed, market id) when a seed is configured."""
        if not self.jitter:
            return None
        if self.seed is None:
            return random.Random()
        return random.Random(f"{self.seed}:{market_id}")

    def estimate(
        self,
        market: MarketRecord,
        price_history: Iterable[Any] | None = None,
    ) -> MovementStats:
        samples = parse_price_samples(price_history) if price_history is not None else []
        if samples:
            return movement_from_history(samples)
        return movement_from_spread(market.tokens, self.rng_for(market.id))
