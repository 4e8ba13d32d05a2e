"""Ingestion and normalization pipeline: normalize, categorize, estimate, select, rank."""

from polymovers.pipeline.categorize import CATEGORIES, Categorizer
from polymovers.pipeline.movement import MovementEstimator
from polymovers.pipeline.processor import MarketPipeline
from polymovers.pipeline.tiers import FallbackChain, FilterTier, build_tiers

__all__ = [
    "CATEGORIES",
    "Categorizer",
    "FallbackChain",
    "FilterTier",
    "MarketPipeline",
    "MovementEstimator",
    "build_tiers",
]
