"""
Shared fakes and helpers for the console tests.
"""
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional


# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from forgewatch.types import Event, RunSnapshot


_END = object()


def make_event(run_id: str, event_id: str, kind: str, payload: Any = None, agent_id: str = "agent-1") -> Event:
    return Event(
        id=event_id,
        run_id=run_id,
        agent_id=agent_id,
        timestamp="2026-10-17T12:00:00+00:00",
        kind=kind,
        payload=payload if payload is not None else {},
    )


def event_json(run_id: str, event_id: str, kind: str, payload: Any = None, agent_id: str = "agent-1") -> str:
    return make_event(run_id, event_id, kind, payload, agent_id).model_dump_json()


class FakeSocket:
    """Async-iterable stand-in for a websocket connection."""

    def __init__(self, messages=(), hold_open: bool = False):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False
        for message in messages:
            self.queue.put_nowait(message)
        if not hold_open:
            self.queue.put_nowait(_END)

    def feed(self, message) -> None:
        self.queue.put_nowait(message)

    def end(self) -> None:
        self.queue.put_nowait(_END)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.queue.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True
        self.queue.put_nowait(_END)


class FakeConnector:
    """Returns (or raises) the queued results one connect() at a time."""

    def __init__(self, *results):
        self.results = list(results)
        self.urls: List[str] = []

    async def __call__(self, url: str):
        self.urls.append(url)
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class FakeBackend:
    """Snapshot source with optional per-run gates to delay responses."""

    def __init__(self, snapshots: Optional[Dict[str, Any]] = None):
        self.snapshots: Dict[str, Any] = dict(snapshots or {})
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []
        self.cancelled: List[str] = []

    async def get_run(self, run_id: str) -> RunSnapshot:
        self.calls.append(run_id)
        gate = self.gates.get(run_id)
        if gate is not None:
            try:
                await gate.wait()
            except asyncio.CancelledError:
                self.cancelled.append(run_id)
                raise
        result = self.snapshots[run_id]
        if isinstance(result, Exception):
            raise result
        return result


async def pump(delay: float = 0.01) -> None:
    """Let background tasks (receive loops, pollers) make progress."""
    await asyncio.sleep(delay)
