"""Movement estimator: history mode and spread fallback."""

import random

import pytest

from polymovers.models.market import MarketRecord, Token
from polymovers.models.movement import PriceSample
from polymovers.pipeline.movement import (
    MovementEstimator,
    movement_from_history,
    movement_from_spread,
    parse_price_samples,
    primary_token,
)


def tokens(*pairs):
    return tuple(Token(outcome=o, price=p) for o, p in pairs)


def test_history_sorts_by_timestamp_and_takes_latest():
    samples = parse_price_samples([{"t": 3, "p": 0.5}, {"t": 1, "p": "0.4"}, {"t": 2, "p": 0.7}])
    stats = movement_from_history(samples)
    assert stats.high == 0.7
    assert stats.low == 0.4
    assert stats.current_price == 0.5
    assert stats.movement == pytest.approx(0.3)
    assert stats.source == "history"


def test_history_iso_timestamps_and_bad_samples():
    samples = parse_price_samples(
        [
            {"timestamp": "2026-01-02T00:00:00Z", "price": 0.2},
            {"timestamp": "2026-01-01T00:00:00Z", "price": 0.3},
            {"timestamp": "soon", "price": 0.9},
            {"timestamp": 5, "price": 1.5},
            "junk",
        ]
    )
    assert len(samples) == 2
    stats = movement_from_history(samples)
    assert stats.current_price == 0.2
    assert stats.high == 0.3


def test_history_rounds_to_four_places():
    stats = movement_from_history([PriceSample(timestamp=1, price=0.123456), PriceSample(timestamp=2, price=0.654321)])
    assert stats.high == 0.6543
    assert stats.low == 0.1235
    assert stats.movement == pytest.approx(0.5308)


def test_empty_history_is_all_zero():
    stats = movement_from_history([])
    assert (stats.current_price, stats.high, stats.low, stats.movement) == (0, 0, 0, 0)


def test_spread_deterministic_two_tokens():
    stats = movement_from_spread(tokens(("Yes", 0.6), ("No", 0.4)))
    # spread 0.2 -> base 0.2 (capped at 0.20), half-width 0.1
    assert stats.current_price == 0.6
    assert stats.high == pytest.approx(0.7)
    assert stats.low == pytest.approx(0.5)
    assert stats.movement == pytest.approx(0.2)
    assert stats.source == "spread"


def test_spread_single_token_uses_default_spread():
    stats = movement_from_spread(tokens(("Yes", 0.5)))
    # spread 0.1 -> base 0.15 -> half-width 0.075
    assert stats.high == pytest.approx(0.575)
    assert stats.low == pytest.approx(0.425)
    assert stats.movement == pytest.approx(0.15)


def test_spread_small_spread_uses_minimum_variation():
    stats = movement_from_spread(tokens(("Yes", 0.5), ("No", 0.49)))
    # spread 0.01 -> base floored at 0.05 -> half-width 0.025
    assert stats.movement == pytest.approx(0.05)


def test_spread_clamps_to_unit_interval():
    stats = movement_from_spread(tokens(("Yes", 0.98), ("No", 0.02)))
    assert stats.high == 1.0
    assert stats.low == pytest.approx(0.88)
    assert stats.current_price == 0.98
    assert stats.movement == pytest.approx(0.12)
    stats = movement_from_spread(tokens(("Yes", 0.0), ("No", 1.0)))
    assert stats.low == 0.0
    assert stats.current_price == 0.0


def test_primary_token_selection():
    assert primary_token(tokens(("Lakers", 0.3), ("Celtics win", 0.7))).outcome == "Celtics win"
    assert primary_token(tokens(("No", 0.3), ("YES", 0.7))).outcome == "YES"
    assert primary_token(tokens(("Trump", 0.55), ("Harris", 0.45))).outcome == "Trump"


def test_jittered_spread_never_breaks_invariants():
    for i in range(300):
        rng = random.Random(i)
        toks = tokens(*[(f"o{j}", round(rng.random(), 3)) for j in range(rng.randint(1, 4))])
        stats = movement_from_spread(toks, rng)
        assert 0 <= stats.low <= stats.current_price <= stats.high <= 1
        assert stats.movement == pytest.approx(stats.high - stats.low)
        assert stats.movement <= 0.2 + 1e-9


def test_estimator_prefers_history_and_falls_back_to_spread():
    est = MovementEstimator(jitter=False)
    market = MarketRecord(id="m1", question="Q", tokens=tokens(("Yes", 0.6), ("No", 0.4)))
    assert est.estimate(market, [{"t": 1, "p": 0.1}, {"t": 2, "p": 0.2}]).source == "history"
    assert est.estimate(market, []).source == "spread"
    assert est.estimate(market, [{"t": "x", "p": "y"}]).source == "spread"
    assert est.estimate(market).movement == pytest.approx(0.2)


def test_seeded_estimator_is_reproducible():
    market = MarketRecord(id="m1", question="Q", tokens=tokens(("Yes", 0.6), ("No", 0.4)))
    first = MovementEstimator(seed=42).estimate(market)
    second = MovementEstimator(seed=42).estimate(market)
    assert first == second
    assert MovementEstimator(jitter=False).rng_for("m1") is None
