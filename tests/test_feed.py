"""Refresh service: publish, replace, keep last good set on failure, no overlapping runs."""

import asyncio
import threading
import time

from polymovers.feed import MarketFeed
from polymovers.ingestion.errors import FetchError, FetchFailure
from polymovers.pipeline.movement import MovementEstimator
from polymovers.pipeline.processor import MarketPipeline


def pipeline():
    return MarketPipeline(estimator=MovementEstimator(jitter=False), relevance_keywords=("bitcoin",))


def test_refresh_publishes_and_replaces(make_raw):
    batches = iter([[make_raw("a"), make_raw("b")], [make_raw("c")]])
    feed = MarketFeed(lambda: next(batches), pipeline())
    assert feed.snapshot.markets == []

    snap = feed.refresh()
    assert [m.id for m in snap.markets] == ["a", "b"]
    assert snap.last_updated is not None
    assert snap.diagnostics.selected_tier == "strict"

    snap = feed.refresh()
    assert [m.id for m in snap.markets] == ["c"]
    assert snap.refresh_count == 2


def test_failed_fetch_keeps_previous_set(make_raw):
    calls = {"n": 0}

    def fetch():
        calls["n"] += 1
        if calls["n"] == 2:
            raise FetchError(FetchFailure.RATE_LIMITED, "429")
        return [make_raw(f"m{calls['n']}")]

    feed = MarketFeed(fetch, pipeline())
    first = feed.refresh()
    failed = feed.refresh()
    assert [m.id for m in failed.markets] == ["m1"]
    assert failed.last_updated == first.last_updated
    assert failed.error_reason == "rate_limited"
    assert "rate limit" in failed.error_message
    assert feed.get_status()["error_reason"] == "rate_limited"

    recovered = feed.refresh()
    assert [m.id for m in recovered.markets] == ["m3"]
    assert recovered.error_reason is None
    assert recovered.refresh_count == 3


def test_markets_for_category(make_raw):
    raw = [make_raw("p", "Who wins the election?"), make_raw("s", "NBA finals?"), make_raw("o", "Quiet question?")]
    feed = MarketFeed(lambda: raw, pipeline())
    feed.refresh()
    assert [m.id for m in feed.markets_for("politics")] == ["p"]
    assert [m.id for m in feed.markets_for("Sports")] == ["s"]
    assert len(feed.markets_for("all")) == 3
    assert len(feed.markets_for(None)) == 3
    assert feed.markets_for("weather") == []


def test_refreshes_never_overlap(make_raw):
    active = {"now": 0, "max": 0}
    lock = threading.Lock()

    def slow_fetch():
        with lock:
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
        time.sleep(0.02)
        with lock:
            active["now"] -= 1
        return [make_raw("a")]

    feed = MarketFeed(slow_fetch, pipeline())
    threads = [threading.Thread(target=feed.refresh) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert active["max"] == 1
    assert feed.snapshot.refresh_count == 4


def test_run_loop_stops(make_raw):
    calls = []

    def fetch():
        calls.append(1)
        return [make_raw("a")]

    feed = MarketFeed(fetch, pipeline())

    async def main():
        stop = asyncio.Event()
        task = asyncio.create_task(feed.run(0.01, stop_event=stop))
        await asyncio.sleep(0.1)
        stop.set()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(main())
    assert len(calls) >= 2
    assert feed.snapshot.refresh_count == len(calls)


def test_unexpected_error_keeps_previous_set(make_raw):
    calls = {"n": 0}

    def fetch():
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("boom")
        return [make_raw("a")]

    feed = MarketFeed(fetch, pipeline())
    first = feed.refresh()
    failed = feed.refresh()
    assert [m.id for m in failed.markets] == ["a"]
    assert failed.last_updated == first.last_updated
    assert failed.error_reason == "unknown"
    assert failed.error_message == "Failed to fetch markets: boom"


def test_pipeline_error_is_recorded(make_raw):
    def broken_history(record):
        raise ValueError("bad history")

    feed = MarketFeed(lambda: [make_raw("a")], pipeline(), history_provider=broken_history)
    snap = feed.refresh()
    assert snap.markets == []
    assert snap.error_reason == "unknown"
    assert snap.refresh_count == 1


def test_run_loop_survives_a_failed_refresh(make_raw):
    calls = []

    def fetch():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return [make_raw("a")]

    feed = MarketFeed(fetch, pipeline())

    async def main():
        stop = asyncio.Event()
        task = asyncio.create_task(feed.run(0.01, stop_event=stop))
        await asyncio.sleep(0.1)
        assert not task.done()
        stop.set()
        await asyncio.wait_for(task, timeout=2)

    asyncio.run(main())
    assert len(calls) >= 2
    assert [m.id for m in feed.snapshot.markets] == ["a"]
    assert feed.snapshot.error_reason is None
