"""
Stream Reconnect Policies
=========================
The stream client only reports connected/disconnected. Whether and when to
reconnect is decided by an injected policy, so tests can substitute
deterministic timing.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Iterator, Optional, Protocol

from .config import RetryConfig
from .errors import TransportError
from .stream import StreamClient

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class ReconnectPolicy(Protocol):
    def delays(self) -> Iterator[float]:
        """Yield the wait before each reconnect attempt; exhaustion means give up."""
        ...


class NoReconnect:
    """Never reconnect."""

    def delays(self) -> Iterator[float]:
        return iter(())


class ExponentialBackoff:
    """Bounded exponential backoff with jitter and a retry cap."""

    def __init__(
        self,
        max_retries: int = 5,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: float = 0.1,
        rng: Optional[random.Random] = None,
    ):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: RetryConfig, rng: Optional[random.Random] = None) -> "ExponentialBackoff":
        return cls(
            max_retries=config.max_retries,
            initial_delay=config.initial_delay,
            max_delay=config.max_delay,
            exponential_base=config.exponential_base,
            jitter=config.jitter,
            rng=rng,
        )

    def delays(self) -> Iterator[float]:
        for attempt in range(self.max_retries):
            delay = min(self.initial_delay * (self.exponential_base ** attempt), self.max_delay)
            if self.jitter:
                delay *= 1 + self._rng.uniform(-self.jitter, self.jitter)
            yield max(0.0, delay)


class ReconnectingStream:
    """
    Keeps a StreamClient connected according to a ReconnectPolicy.

    The retry budget is reset only after a connection that delivered at least
    one event. Call stop() to close the stream for good.
    """

    def __init__(self, stream: StreamClient, policy: Optional[ReconnectPolicy] = None, sleep: Sleeper = asyncio.sleep):
        self.stream = stream
        self.policy = policy or NoReconnect()
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stopping = False
        self.attempts = 0
        self.gave_up = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "ReconnectingStream":
        if self.running:
            return self
        self._stopping = False
        self.gave_up = False
        self._task = asyncio.create_task(self._run())
        return self

    async def _run(self) -> None:
        delays = self.policy.delays()
        while not self._stopping:
            self.attempts += 1
            try:
                await self.stream.connect()
            except TransportError:
                pass
            else:
                received = self.stream.received
                await self.stream.wait_closed()
                if self.stream.received > received:
                    delays = self.policy.delays()

            if self._stopping:
                break

            delay = next(delays, None)
            if delay is None:
                self.gave_up = True
                logger.error(f"❌ Giving up on event stream {self.stream.url} after {self.attempts} attempt(s)")
                break

            logger.info(f"Reconnecting to event stream in {delay:.1f}s")
            await self._sleep(delay)

    async def wait(self) -> None:
        """Wait until the supervisor stops (gave up or stopped)."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Stop reconnecting and close the stream. Safe to call repeatedly."""
        self._stopping = True
        task, self._task = self._task, None
        await self.stream.close()
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
