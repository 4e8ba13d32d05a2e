"""Fallback chain: ordered filter tiers, tried strict to loose against the full record set."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from polymovers.models.market import MarketRecord
from polymovers.models.pipeline import PipelineDiagnostics
from polymovers.pipeline.ranking import rank_by_relevance, relevance_score


@dataclass(frozen=True)
class TierContext:
    """What tier predicates may look at besides the record itself."""

    now: datetime
    relevance_keywords: tuple[str, ...]


@dataclass(frozen=True)
class FilterTier:
    """One named predicate set. Ranked tiers are sorted by relevance before the limit is applied."""

    name: str
    predicate: Callable[[MarketRecord, TierContext], bool]
    limit: int | None = None
    ranked: bool = False

    def apply(self, records: Sequence[MarketRecord], ctx: TierContext) -> list[MarketRecord]:
        matched = [r for r in records if self.predicate(r, ctx)]
        if self.ranked:
            matched = rank_by_relevance(matched, ctx.relevance_keywords, ctx.now)
        if self.limit is not None:
            matched = matched[: self.limit]
        return matched


def _is_strict(record: MarketRecord, ctx: TierContext) -> bool:
    return not record.closed and not record.archived


def _is_unarchived(record: MarketRecord, ctx: TierContext) -> bool:
    return not record.archived


def _is_relevant(record: MarketRecord, ctx: TierContext) -> bool:
    return relevance_score(record.question, ctx.relevance_keywords) > 0


def _ends_after(record: MarketRecord, cutoff: datetime) -> bool:
    if record.archived:
        return False
    if record.end_date is None:
        return not record.closed
    return record.end_date > cutoff


LONG_HORIZON_DAYS = 30
KEYWORD_TIER_LIMIT = 15
FUTURE_TIER_LIMIT = 30


def strict_tier() -> FilterTier:
    return FilterTier("strict", _is_strict)


def relaxed_tier() -> FilterTier:
    return FilterTier("relaxed", _is_unarchived)


def keyword_tier(limit: int | None = KEYWORD_TIER_LIMIT) -> FilterTier:
    return FilterTier("keyword", _is_relevant, limit=limit, ranked=True)


def long_horizon_tier(days: int = LONG_HORIZON_DAYS) -> FilterTier:
    """Markets with at least `days` left before resolution (undated ones if still open)."""
    return FilterTier(
        "long_horizon", lambda r, ctx: _ends_after(r, ctx.now + timedelta(days=days))
    )


def future_tier(limit: int | None = FUTURE_TIER_LIMIT) -> FilterTier:
    """Markets with any future end date (undated ones if still open)."""
    return FilterTier("future", lambda r, ctx: _ends_after(r, ctx.now), limit=limit)


TIER_BUILDERS: dict[str, Callable[[], FilterTier]] = {
    "long_horizon": long_horizon_tier,
    "future": future_tier,
    "strict": strict_tier,
    "relaxed": relaxed_tier,
    "keyword": keyword_tier,
}

DEFAULT_TIER_NAMES = ("strict", "relaxed", "keyword")


def build_tiers(
    names: Iterable[str] = DEFAULT_TIER_NAMES,
    keyword_limit: int | None = KEYWORD_TIER_LIMIT,
) -> tuple[FilterTier, ...]:
    """Tier descriptors by name, in the given order. Unknown names raise ValueError."""
    tiers = []
    for name in names:
        if name not in TIER_BUILDERS:
            raise ValueError(f"Unknown filter tier: {name!r} (known: {', '.join(TIER_BUILDERS)})")
        if name == "keyword":
            tiers.append(keyword_tier(limit=keyword_limit))
        else:
            tiers.append(TIER_BUILDERS[name]())
    return tuple(tiers)


@dataclass(frozen=True)
class TierSelection:
    tier: str | None
    records: list[MarketRecord]


class FallbackChain:
    """Tries each tier against the full record set and keeps the first that yields enough.

    A tier is accepted when it yields at least min_results records. If no tier gets there, the
    largest non-empty result wins (earliest tier on ties); empty only when every tier is empty.
    """

    def __init__(self, tiers: Sequence[FilterTier] | None = None, min_results: int = 1) -> None:
        self.tiers = tuple(tiers) if tiers is not None else build_tiers()
        self.min_results = max(1, min_results)

    def apply(
        self,
        records: Sequence[MarketRecord],
        ctx: TierContext,
        diagnostics: PipelineDiagnostics | None = None,
    ) -> TierSelection:
        best = TierSelection(None, [])
        for tier in self.tiers:
            result = tier.apply(records, ctx)
            if diagnostics is not None:
                diagnostics.tier_counts[tier.name] = len(result)
            if len(result) >= self.min_results:
                return TierSelection(tier.name, result)
            if len(result) > len(best.records):
                best = TierSelection(tier.name, result)
        return best
