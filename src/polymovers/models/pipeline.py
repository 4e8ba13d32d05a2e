"""Processing options, diagnostics and result for one pipeline run."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from polymovers.models.market import Market


class ProcessOptions(BaseModel):
    """Caller-supplied post-filters applied after scoring. Defaults filter nothing."""

    exclude_resolving_soon: bool = False
    exclude_inactive: bool = False
    resolving_soon_hours: float = Field(24.0, ge=0)
    minimum_movement: float = Field(0.0, ge=0)
    minimum_volume: float = Field(0.0, ge=0)
    limit: int | None = Field(None, ge=0)
    now: datetime | None = None  # reference time for resolving-soon; defaults to call time


class PipelineDiagnostics(BaseModel):
    """Aggregate counters for one run: records in, per-tier survivors, drops by reason."""

    records_in: int = 0
    normalized: int = 0
    dropped: dict[str, int] = Field(default_factory=dict)
    tier_counts: dict[str, int] = Field(default_factory=dict)
    selected_tier: str | None = None
    selected: int = 0
    history_used: int = 0
    filtered_out: dict[str, int] = Field(default_factory=dict)
    records_out: int = 0

    def count_drop(self, reason: str, n: int = 1) -> None:
        self.dropped[reason] = self.dropped.get(reason, 0) + n

    def count_filtered(self, reason: str, n: int = 1) -> None:
        self.filtered_out[reason] = self.filtered_out.get(reason, 0) + n


class PipelineResult(BaseModel):
    """Sorted markets plus the diagnostics of the run that produced them."""

    markets: list[Market] = Field(default_factory=list)
    diagnostics: PipelineDiagnostics = Field(default_factory=PipelineDiagnostics)
