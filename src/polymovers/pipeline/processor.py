"""Pipeline orchestrator: raw records -> normalized -> tier selection -> scored -> sorted."""

from __future__ import annotations

import random
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import structlog

from polymovers.models.market import Market, MarketRecord
from polymovers.models.pipeline import PipelineDiagnostics, PipelineResult, ProcessOptions
from polymovers.pipeline.categorize import Categorizer
from polymovers.pipeline.movement import MovementEstimator
from polymovers.pipeline.normalize import extract_id, normalize_market, rejection_reason
from polymovers.pipeline.ranking import default_relevance_keywords, sort_by_movement
from polymovers.pipeline.tiers import FallbackChain, TierContext, build_tiers

if TYPE_CHECKING:
    from polymovers.config.settings import Settings

log = structlog.get_logger(__name__)

HistoryProvider = Callable[[MarketRecord], "Iterable[Any] | None"]

DROP_DUPLICATE_ID = "duplicate_id"
FILTER_INACTIVE = "inactive"
FILTER_RESOLVING_SOON = "resolving_soon"
FILTER_BELOW_MOVEMENT = "below_minimum_movement"
FILTER_BELOW_VOLUME = "below_minimum_volume"
FILTER_OVER_LIMIT = "over_limit"


def _utc_now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _as_records(raw_records: Any) -> list[Any]:
    if isinstance(raw_records, (list, tuple)):
        return list(raw_records)
    return []


def is_resolving_soon(market: MarketRecord, now: datetime, hours: float = 24.0) -> bool:
    """End date falls between now and now + hours."""
    if market.end_date is None:
        return False
    return now <= market.end_date <= now + timedelta(hours=hours)


class MarketPipeline:
    """Single entry point turning a raw upstream batch into movement-sorted markets."""

    def __init__(
        self,
        categorizer: Categorizer | None = None,
        estimator: MovementEstimator | None = None,
        chain: FallbackChain | None = None,
        relevance_keywords: Sequence[str] | None = None,
        volume_placeholder: bool = False,
        seed: int | str | None = None,
    ) -> None:
        self.categorizer = categorizer or Categorizer()
        self.estimator = estimator or MovementEstimator(seed=seed)
        self.chain = chain or FallbackChain()
        self.relevance_keywords = tuple(k.lower() for k in relevance_keywords) if relevance_keywords else None
        self.volume_placeholder = volume_placeholder
        self.seed = seed

    @classmethod
    def from_settings(cls, settings: Settings) -> MarketPipeline:
        seed = settings.random_seed
        return cls(
            categorizer=Categorizer(settings.category_keywords or None),
            estimator=MovementEstimator(jitter=settings.spread_jitter, seed=seed),
            chain=FallbackChain(
                build_tiers(settings.tier_names, keyword_limit=settings.keyword_tier_limit),
                min_results=settings.min_tier_results,
            ),
            relevance_keywords=settings.relevance_keywords or None,
            volume_placeholder=settings.volume_placeholder,
            seed=seed,
        )

    def _placeholder_rng(self, raw: dict[str, Any]) -> random.Random | None:
        if not self.volume_placeholder:
            return None
        if self.seed is None:
            return random.Random()
        return random.Random(f"{self.seed}:volume:{extract_id(raw)}")

    def normalize_batch(
        self, raw_records: Any, diagnostics: PipelineDiagnostics | None = None
    ) -> list[MarketRecord]:
        """Normalize every usable record once. Rejected and duplicate-ID records are counted and dropped."""
        diagnostics = diagnostics if diagnostics is not None else PipelineDiagnostics()
        rows = _as_records(raw_records)
        diagnostics.records_in = len(rows)
        seen: set[str] = set()
        records = []
        for raw in rows:
            reason = rejection_reason(raw)
            if reason is not None:
                diagnostics.count_drop(reason)
                continue
            record = normalize_market(raw, placeholder_rng=self._placeholder_rng(raw))
            if record is None:
                continue
            if record.id in seen:
                diagnostics.count_drop(DROP_DUPLICATE_ID)
                continue
            seen.add(record.id)
            records.append(record)
        diagnostics.normalized = len(records)
        return records

    def tier_context(self, now: datetime) -> TierContext:
        keywords = self.relevance_keywords or default_relevance_keywords(now)
        return TierContext(now=now, relevance_keywords=keywords)

    def select(
        self,
        raw_records: Any,
        now: datetime | None = None,
        diagnostics: PipelineDiagnostics | None = None,
    ) -> list[MarketRecord]:
        """Normalize the batch and run the fallback chain over it."""
        diagnostics = diagnostics if diagnostics is not None else PipelineDiagnostics()
        now = _utc_now(now)
        records = self.normalize_batch(raw_records, diagnostics)
        selection = self.chain.apply(records, self.tier_context(now), diagnostics)
        diagnostics.selected_tier = selection.tier
        diagnostics.selected = len(selection.records)
        return selection.records

    def score(self, record: MarketRecord, price_history: Iterable[Any] | None = None) -> Market:
        """Categorize and estimate movement for one record."""
        stats = self.estimator.estimate(record, price_history)
        return Market(
            **record.model_dump(),
            category=self.categorizer.categorize(record),
            current_price=stats.current_price,
            high=stats.high,
            low=stats.low,
            movement=stats.movement,
            movement_source=stats.source,
        )

    def _post_filter(
        self, markets: list[Market], options: ProcessOptions, now: datetime, diagnostics: PipelineDiagnostics
    ) -> list[Market]:
        kept = []
        for m in markets:
            if options.exclude_inactive and not m.active:
                diagnostics.count_filtered(FILTER_INACTIVE)
            elif options.exclude_resolving_soon and is_resolving_soon(m, now, options.resolving_soon_hours):
                diagnostics.count_filtered(FILTER_RESOLVING_SOON)
            elif m.movement < options.minimum_movement:
                diagnostics.count_filtered(FILTER_BELOW_MOVEMENT)
            elif m.volume_24h < options.minimum_volume:
                diagnostics.count_filtered(FILTER_BELOW_VOLUME)
            else:
                kept.append(m)
        return kept

    def run(
        self,
        raw_records: Any,
        options: ProcessOptions | None = None,
        history_provider: HistoryProvider | None = None,
    ) -> PipelineResult:
        """Full run with diagnostics. Never raises for malformed records."""
        options = options or ProcessOptions()
        now = _utc_now(options.now)
        diagnostics = PipelineDiagnostics()
        selected = self.select(raw_records, now=now, diagnostics=diagnostics)

        scored = []
        for record in selected:
            history = history_provider(record) if history_provider is not None else None
            market = self.score(record, history)
            if market.movement_source == "history":
                diagnostics.history_used += 1
            scored.append(market)

        markets = sort_by_movement(self._post_filter(scored, options, now, diagnostics))
        if options.limit is not None and len(markets) > options.limit:
            diagnostics.count_filtered(FILTER_OVER_LIMIT, len(markets) - options.limit)
            markets = markets[: options.limit]
        diagnostics.records_out = len(markets)
        log.debug(
            "pipeline_processed",
            records_in=diagnostics.records_in,
            normalized=diagnostics.normalized,
            selected_tier=diagnostics.selected_tier,
            records_out=diagnostics.records_out,
        )
        return PipelineResult(markets=markets, diagnostics=diagnostics)

    def process(
        self,
        raw_records: Any,
        options: ProcessOptions | None = None,
        history_provider: HistoryProvider | None = None,
    ) -> list[Market]:
        return self.run(raw_records, options, history_provider).markets
