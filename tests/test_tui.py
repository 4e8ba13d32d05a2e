"""TUI smoke test with Textual's headless pilot."""

import asyncio

from polymovers.feed import MarketFeed
from polymovers.pipeline.movement import MovementEstimator
from polymovers.pipeline.processor import MarketPipeline
from polymovers.tui.app import MoversTable, MoversTUI, StatusPanel


def test_table_shows_feed_and_cycles_categories(make_raw):
    raw = [make_raw("p", "Who wins the election?"), make_raw("s", "NBA finals?")]
    feed = MarketFeed(lambda: raw, MarketPipeline(estimator=MovementEstimator(jitter=False)))

    async def main():
        app = MoversTUI(feed, refresh_interval_sec=0)
        async with app.run_test() as pilot:
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert app.query_one(MoversTable).row_count == 2
            assert app.query_one(StatusPanel).count == 2

            await pilot.press("c")
            await pilot.pause()
            assert app.category == "politics"
            assert app.query_one(MoversTable).row_count == 1

    asyncio.run(main())
