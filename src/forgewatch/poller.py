"""
History Poller
==============
Periodically pulls the full snapshot of one run.

Each successful fetch replaces the poller's snapshot wholesale. Failures are
logged and leave the previous snapshot in place (stale but available).
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .types import RunSnapshot

logger = logging.getLogger(__name__)

FetchSnapshot = Callable[[str], Awaitable[RunSnapshot]]
SnapshotListener = Callable[[str, RunSnapshot], None]
Sleeper = Callable[[float], Awaitable[None]]


class HistoryPoller:
    """
    Timer-driven snapshot fetch loop scoped to a single run.

    Usage:
        poller = HistoryPoller(client.get_run, on_snapshot=apply)
        poller.start("run_1234")
        ...
        await poller.aclose()
    """

    def __init__(
        self,
        fetch: FetchSnapshot,
        interval: float = 2.0,
        on_snapshot: Optional[SnapshotListener] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._fetch = fetch
        self.interval = interval
        self._on_snapshot = on_snapshot
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

        self.run_id: Optional[str] = None
        self.snapshot: Optional[RunSnapshot] = None
        self.last_error: Optional[str] = None
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stale(self) -> bool:
        """True while the most recent fetch failed."""
        return self.last_error is not None

    def start(self, run_id: str, interval: Optional[float] = None) -> "HistoryPoller":
        """Begin polling run_id. A poller serves one run; create a new one to switch."""
        if self._task is not None:
            raise RuntimeError(f"Poller already started for run {self.run_id}")
        if interval is not None:
            self.interval = interval
        self.run_id = run_id
        self._task = asyncio.create_task(self._poll_loop(run_id))
        logger.info(f"📜 Polling run {run_id} every {self.interval:g}s")
        return self

    async def _poll_loop(self, run_id: str) -> None:
        try:
            while not self._stopped:
                await self.poll_once()
                if self._stopped:
                    break
                await self._sleep(self.interval)
        finally:
            logger.debug(f"Poll loop for run {run_id} exited")

    async def poll_once(self) -> bool:
        """
        Fetch one snapshot now.

        Returns True if a snapshot was applied. A response that lands after
        stop() is discarded.
        """
        run_id = self.run_id
        if run_id is None:
            raise RuntimeError("Poller has no run; call start() first")

        try:
            snapshot = await self._fetch(run_id)
        except Exception as e:
            self.failures += 1
            self.last_error = str(e)
            logger.warning(f"Fetching run {run_id} failed, keeping previous snapshot: {e}")
            return False

        if self._stopped or run_id != self.run_id:
            logger.debug(f"Discarding late snapshot for run {run_id}")
            return False

        self.snapshot = snapshot
        self.last_error = None

        if self._on_snapshot is not None:
            self._on_snapshot(run_id, snapshot)
        return True

    def stop(self) -> Optional[asyncio.Task]:
        """
        Stop polling without waiting.

        Returns the cancelled loop task so the owner can await its teardown.
        """
        self._stopped = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        return task

    async def aclose(self) -> None:
        """Stop polling and wait for the loop to finish."""
        task = self.stop()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "HistoryPoller":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
