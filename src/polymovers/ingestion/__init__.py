"""Upstream data access: Polymarket HTTP transport and typed fetch failures."""
