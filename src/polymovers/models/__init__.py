"""Canonical schema (Pydantic) - MarketRecord, Market, movement and pipeline results."""

from polymovers.models.market import Market, MarketRecord, Token
from polymovers.models.movement import MovementStats, PriceSample
from polymovers.models.pipeline import PipelineDiagnostics, PipelineResult, ProcessOptions

__all__ = [
    "Market",
    "MarketRecord",
    "Token",
    "MovementStats",
    "PriceSample",
    "PipelineDiagnostics",
    "PipelineResult",
    "ProcessOptions",
]
