"""PolyMovers - prediction market movers dashboard."""

__version__ = "0.1.0"
