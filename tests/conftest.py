"""Shared fixtures: raw record factory and a fixed clock."""

from datetime import datetime, timezone

import pytest


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_raw():
    """Factory for CLOB-shaped raw market records."""

    def _make(condition_id, question="Will it happen?", **fields):
        raw = {
            "condition_id": condition_id,
            "question": question,
            "closed": False,
            "archived": False,
            "tokens": [{"outcome": "Yes", "price": 0.6}, {"outcome": "No", "price": 0.4}],
        }
        raw.update(fields)
        return raw

    return _make
