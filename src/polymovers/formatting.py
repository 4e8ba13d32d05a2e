"""Display helpers shared by the CLI, TUI and API."""

from __future__ import annotations

from polymovers.models.market import Market

HIGH_MOVEMENT = 0.10
MEDIUM_MOVEMENT = 0.05
LOW_MOVEMENT = 0.02


def movement_percentage(market: Market) -> float:
    """Movement relative to the low, in percent (0 when low is 0)."""
    if market.low == 0:
        return 0.0
    return round(market.movement / market.low * 100, 1)


def price_as_percentage(price: float) -> str:
    return f"{price * 100:.1f}%"


def movement_band(movement: float) -> str:
    if movement > HIGH_MOVEMENT:
        return "high"
    if movement > MEDIUM_MOVEMENT:
        return "medium"
    if movement > LOW_MOVEMENT:
        return "low"
    return "minimal"


def truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."
