"""
Test cases for the debounced, single-flight query session.
"""

import asyncio

from semsearch.core.pipeline import QueryChannel, SearchSession


class FakeEngine:
    """Engine double whose searches sleep for a per-query delay."""

    def __init__(self, delays=None):
        self.delays = delays or {}
        self.searched = []
        self.ready_to_show = True
        self.ready_to_search = True

    async def search_text(self, text, limit=None):
        self.searched.append(text)
        await asyncio.sleep(self.delays.get(text, 0))
        return [f"text:{text}"]

    async def search_image(self, image, limit=None):
        self.searched.append(image)
        await asyncio.sleep(self.delays.get(image, 0))
        return [f"image:{image.decode()}"]


class FailingEngine(FakeEngine):
    async def search_text(self, text, limit=None):
        raise RuntimeError("engine exploded")


def test_channel_generation_advances():
    """Test that each submission gets a new generation and cancels the last."""
    async def scenario():
        channel = QueryChannel("text")

        async def run(generation):
            await asyncio.sleep(1)

        first = channel.submit(run)
        second = channel.submit(run)
        await asyncio.sleep(0)
        assert first.cancelled()
        assert not channel.is_current(1)
        assert channel.is_current(2)
        channel.cancel()
        await asyncio.gather(second, return_exceptions=True)
        return channel

    channel = asyncio.run(scenario())

    assert channel.generation == 2
    assert not channel.busy


def test_newer_text_query_supersedes_slow_one():
    """Test that a slow query A never publishes after a later query B."""
    engine = FakeEngine(delays={"alpha": 0.2, "beta": 0.01})
    session = SearchSession(engine, debounce_seconds=0)

    async def scenario():
        session.submit_text_query("alpha")
        await asyncio.sleep(0.02)
        session.submit_text_query("beta")
        await session.wait_idle()

    asyncio.run(scenario())

    assert engine.searched == ["alpha", "beta"]
    assert session.current_results == ["text:beta"]


def test_keystroke_burst_runs_single_query():
    """Test that rapid typing inside the debounce window executes only the last value."""
    engine = FakeEngine()
    session = SearchSession(engine, debounce_seconds=0.05)

    async def scenario():
        for text in ("c", "ca", "cat"):
            session.submit_text_query(text)
            await asyncio.sleep(0.005)
        await session.wait_idle()

    asyncio.run(scenario())

    assert engine.searched == ["cat"]
    assert session.executed_queries == 1
    assert session.current_results == ["text:cat"]


def test_spaced_keystrokes_run_each_query():
    """Test that inputs separated by more than the debounce window all execute."""
    engine = FakeEngine()
    session = SearchSession(engine, debounce_seconds=0.02)

    async def scenario():
        session.submit_text_query("c")
        await session.wait_idle()
        session.submit_text_query("cat")
        await session.wait_idle()

    asyncio.run(scenario())

    assert engine.searched == ["c", "cat"]
    assert session.executed_queries == 2
    assert session.current_results == ["text:cat"]


def test_image_query_supersedes_previous_image():
    """Test single-flight behavior on the image channel."""
    engine = FakeEngine(delays={b"slow": 0.2})
    session = SearchSession(engine, debounce_seconds=0)

    async def scenario():
        session.submit_image_query(b"slow")
        await asyncio.sleep(0.02)
        session.submit_image_query(b"fast")
        await session.wait_idle()

    asyncio.run(scenario())

    assert session.current_results == ["image:fast"]


def test_latest_submission_wins_across_channels():
    """Test that a slow text query finishing after an image query does not overwrite it."""
    engine = FakeEngine(delays={"slow": 0.1})
    session = SearchSession(engine, debounce_seconds=0)

    async def scenario():
        session.submit_text_query("slow")
        await asyncio.sleep(0.01)
        session.submit_image_query(b"photo")
        await session.wait_idle()

    asyncio.run(scenario())

    assert engine.searched == ["slow", b"photo"]
    assert session.current_results == ["image:photo"]


def test_show_all_resets_to_catalog(make_engine, corpus):
    """Test that show_all publishes the full catalog without bootstrap."""
    session = SearchSession(make_engine(), debounce_seconds=0)

    async def scenario():
        session.show_all()
        await session.wait_idle()

    asyncio.run(scenario())

    assert session.ready_to_show
    assert session.current_results == corpus.names


def test_failed_query_publishes_empty_results():
    """Test that engine errors leave an empty result list."""
    session = SearchSession(FailingEngine(), debounce_seconds=0)
    session.current_results = ["stale"]

    async def scenario():
        session.submit_text_query("anything")
        await session.wait_idle()

    asyncio.run(scenario())

    assert session.current_results == []


def test_slow_encoder_result_is_discarded(make_engine, text_encoder):
    """Test that an encoding thread finishing late cannot overwrite newer results."""
    text_encoder.delays = {"north": 0.2}
    engine = make_engine()
    session = SearchSession(engine, debounce_seconds=0)

    async def scenario():
        await engine.bootstrap()
        session.submit_text_query("north")
        await asyncio.sleep(0.05)
        session.submit_text_query("east")
        await session.wait_idle()
        # Let the abandoned encoder thread finish
        await asyncio.sleep(0.25)

    asyncio.run(scenario())

    assert session.ready_to_search
    assert session.current_results == ["item0.jpg", "item2.jpg", "item1.jpg"]


def test_cancel_all_stops_pending_queries():
    """Test that cancel_all prevents pending queries from publishing."""
    engine = FakeEngine()
    session = SearchSession(engine, debounce_seconds=0.1)

    async def scenario():
        session.submit_text_query("never")
        session.cancel_all()
        await session.wait_idle()

    asyncio.run(scenario())

    assert engine.searched == []
    assert session.current_results == []


def test_awaiting_superseded_submission_does_not_raise():
    """Test that a caller awaiting an older submission gets None, not CancelledError."""
    engine = FakeEngine(delays={"slow": 0.2})
    session = SearchSession(engine, debounce_seconds=0.02)

    async def scenario():
        before_start = session.submit_text_query("c")
        latest = session.submit_text_query("cat")
        outcomes = [await before_start, await latest]

        session.debounce_seconds = 0
        running = session.submit_text_query("slow")
        await asyncio.sleep(0.02)
        session.submit_text_query("done")
        outcomes.append(await running)
        await session.wait_idle()
        return outcomes

    outcomes = asyncio.run(scenario())

    assert outcomes == [None, None, None]
    assert engine.searched == ["cat", "slow", "done"]
    assert session.current_results == ["text:done"]


def test_cancel_all_resolves_pending_handles():
    """Test that cancel_all leaves submitted handles resolved rather than cancelled."""
    session = SearchSession(FakeEngine(), debounce_seconds=0.1)

    async def scenario():
        handle = session.submit_image_query(b"photo")
        session.cancel_all()
        return await handle, handle.cancelled()

    assert asyncio.run(scenario()) == (None, False)
