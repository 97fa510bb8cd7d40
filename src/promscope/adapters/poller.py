"""Polling loop driving an exposition source at a fixed cadence."""

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum

from promscope.core.exceptions import FetchFailure
from promscope.core.ports import ExpositionSourcePort

logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    IDLE = "idle"
    LIVE = "live"
    STOPPED = "stopped"


class MetricsPoller:
    """Polls a source and hands each body to ``on_text``.

    Only one fetch (including its retry sequence) is in flight at a time;
    the next poll starts one interval after the previous one started, or
    immediately if it overran. A :class:`FetchFailure` from the source
    ends the loop and moves the state from ``live`` to ``stopped``.
    Stopping cancels any in-flight fetch, and a cancelled fetch never
    reaches ``on_text``.

    Args:
        source: Producer of exposition text.
        on_text: Called with each successfully fetched body.
        interval_seconds: Cadence between poll starts.
    """

    def __init__(
        self,
        source: ExpositionSourcePort,
        on_text: Callable[[str], object],
        interval_seconds: float,
    ) -> None:
        self.source = source
        self.on_text = on_text
        self.interval_seconds = interval_seconds
        self.state = PollerState.IDLE
        self.last_failure: FetchFailure | None = None
        self.last_fetch_time: float | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> bool:
        """Run one polling cycle.

        Returns:
            True if text was fetched and delivered, False on failure.
        """
        try:
            text = await self.source.fetch()
        except FetchFailure as failure:
            self.last_failure = failure
            return False
        self.on_text(text)
        self.last_failure = None
        self.last_fetch_time = time.time()
        return True

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self.state is PollerState.LIVE:
            started = loop.time()
            if not await self.poll_once():
                logger.error("Polling stopped: %s", self.last_failure)
                self.state = PollerState.STOPPED
                return
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))

    def start(self) -> asyncio.Task[None]:
        """Start polling on the running event loop (no-op if already live)."""
        if self._task is not None and not self._task.done():
            return self._task
        self.state = PollerState.LIVE
        self.last_failure = None
        self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Stop polling and wait for the loop to wind down."""
        task, self._task = self._task, None
        if self.state is PollerState.LIVE:
            self.state = PollerState.STOPPED
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
