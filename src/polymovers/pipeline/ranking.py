"""Orderings: relevance ranking for thin fallback tiers, movement order for presentation."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import TypeVar

from polymovers.models.market import Market, MarketRecord

M = TypeVar("M", bound=Market)

TOPICAL_KEYWORDS = ("google", "chatgpt", "ai", "trump", "bitcoin", "election")


def default_relevance_keywords(now: datetime) -> tuple[str, ...]:
    """Current and next year plus standing topical markers."""
    return (str(now.year), str(now.year + 1), *TOPICAL_KEYWORDS)


def relevance_score(question: str, keywords: Iterable[str]) -> int:
    """Number of keywords appearing (case-insensitive substring) in the question."""
    q = question.lower()
    return sum(1 for k in keywords if k.lower() in q)


def relevance_sort_key(
    record: MarketRecord, keywords: Sequence[str], now: datetime
) -> tuple[int, int, float, bool]:
    """Higher score first; then soonest future end date, most recent past, undated; then open first."""
    score = relevance_score(record.question, keywords)
    if record.end_date is None:
        date_bucket, date_key = 2, 0.0
    elif record.end_date > now:
        date_bucket, date_key = 0, record.end_date.timestamp()
    else:
        date_bucket, date_key = 1, -record.end_date.timestamp()
    return (-score, date_bucket, date_key, record.closed)


def rank_by_relevance(
    records: Iterable[MarketRecord], keywords: Sequence[str], now: datetime
) -> list[MarketRecord]:
    return sorted(records, key=lambda r: relevance_sort_key(r, keywords, now))


def sort_by_movement(markets: Iterable[M]) -> list[M]:
    """Movement descending; equal movements keep encounter order."""
    return sorted(markets, key=lambda m: m.movement, reverse=True)
