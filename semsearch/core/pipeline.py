"""
Query pipeline session: the boundary consumed by a front end.

Text and image queries each own a single-flight channel. Submitting to a
channel cancels whatever that channel was still running before the new
query starts. Text submissions wait out a short debounce window inside the
channel task, so a burst of keystrokes is cancelled away until only the last
value reaches the engine.

current_results is only ever written by the most recent submission across
the whole session; a cancelled or superseded query never touches it.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from util.logging import logger, summarize_query
from . import config
from .engine import IMAGE_CHANNEL, TEXT_CHANNEL, SearchEngine


class QueryChannel:
    """Single-flight slot: at most one running task, newer replaces older."""

    def __init__(self, name: str):
        self.name = name
        self.generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, run: Callable[[int], Awaitable[None]]) -> asyncio.Task:
        """Cancel the running task, if any, and start `run(generation)`."""
        self.cancel()
        self.generation += 1
        self._task = asyncio.ensure_future(run(self.generation))
        return self._task

    def cancel(self) -> None:
        if self.busy:
            self._task.cancel()
            logger.log_query(self.name, "superseded", {"generation": self.generation})

    def is_current(self, generation: int) -> bool:
        return generation == self.generation


class SearchSession:
    """Debounced, cancellable query front end over a SearchEngine."""

    def __init__(self, engine: SearchEngine, debounce_seconds: float = None, limit: int = None):
        self.engine = engine
        self.debounce_seconds = config.get_debounce_seconds() if debounce_seconds is None else debounce_seconds
        self.limit = limit
        self.channels = {
            TEXT_CHANNEL: QueryChannel(TEXT_CHANNEL),
            IMAGE_CHANNEL: QueryChannel(IMAGE_CHANNEL),
        }
        self.current_results: List[str] = []
        self.executed_queries = 0
        self._sequence = 0

    @property
    def ready_to_show(self) -> bool:
        return self.engine.ready_to_show

    @property
    def ready_to_search(self) -> bool:
        return self.engine.ready_to_search

    def submit_text_query(self, text: str) -> asyncio.Future:
        """
        Queue a debounced text query; supersedes any pending text query.

        The returned future resolves to None once the query has finished,
        been superseded or been cancelled; it never raises CancelledError
        on behalf of the query.
        """
        return self._submit(TEXT_CHANNEL, text, self.debounce_seconds)

    def submit_image_query(self, image: Any) -> asyncio.Future:
        """Start an image query immediately; supersedes any running image query."""
        return self._submit(IMAGE_CHANNEL, image, 0)

    def show_all(self) -> asyncio.Future:
        """Reset to the full catalog."""
        return self._submit(TEXT_CHANNEL, "", 0)

    def _submit(self, channel_name: str, value: Any, delay: float) -> asyncio.Future:
        self._sequence += 1
        sequence = self._sequence
        channel = self.channels[channel_name]

        async def run(generation: int) -> None:
            if delay > 0:
                await asyncio.sleep(delay)
            await self._execute(channel, generation, sequence, value)

        task = channel.submit(run)
        handle = asyncio.get_running_loop().create_future()

        def settle(done: asyncio.Task) -> None:
            if handle.done():
                return
            # A superseded query resolves to None instead of raising CancelledError
            if done.cancelled() or done.exception() is None:
                handle.set_result(None)
            else:
                handle.set_exception(done.exception())

        task.add_done_callback(settle)
        return handle

    async def _execute(self, channel: QueryChannel, generation: int, sequence: int, value: Any) -> None:
        self.executed_queries += 1
        try:
            if channel.name == TEXT_CHANNEL:
                results = await self.engine.search_text(value, self.limit)
            else:
                results = await self.engine.search_image(value, self.limit)
        except Exception as e:
            logger.log_query(channel.name, "failed", {"query": summarize_query(value), "error": str(e)})
            results = []

        if not channel.is_current(generation) or sequence != self._sequence:
            logger.log_query(channel.name, "superseded", {"generation": generation})
            return

        self.current_results = results

    async def wait_idle(self) -> None:
        """Wait until no channel has a running task."""
        while True:
            pending = [channel.task for channel in self.channels.values() if channel.busy]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def cancel_all(self) -> None:
        for channel in self.channels.values():
            channel.cancel()
