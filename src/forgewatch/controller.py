"""
View Controller
===============
Top-level arbiter between the live stream and per-run history polling.

The controller owns run selection and is the only component that starts or
stops the history poller. Mode switches are synchronous for the caller;
teardown of the previous poller completes in the background and can be
awaited with settle().
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .poller import FetchSnapshot, HistoryPoller
from .reconnect import ReconnectingStream, ReconnectPolicy
from .resolver import input_prompt, pending_input_request, resolve, resolve_runs
from .stream import StreamClient
from .timeline import Timeline
from .types import Event, RunSnapshot, RunState

logger = logging.getLogger(__name__)

ViewListener = Callable[[], None]


class ViewMode(str, Enum):
    LIVE = "live"        # Stream buffer, global or filtered
    HISTORY = "history"  # One selected run, poll snapshots merged with live events


@dataclass(frozen=True)
class RunView:
    """Immutable picture of what the console should show right now."""
    mode: ViewMode
    run_id: Optional[str]
    events: Tuple[Event, ...]  # newest first
    state: RunState
    status: str
    connected: bool
    stale: bool
    input_prompt: Optional[str] = None
    notice: Optional[str] = None

    @property
    def controls_enabled(self) -> bool:
        """Cancel/input controls are hidden for unknown and terminal runs."""
        return self.state is not RunState.UNKNOWN and not self.state.is_terminal


class ViewController:
    """
    Owns the view mode, the selected run and the resources behind them.

    Usage:
        async with ViewController(stream, client.get_run) as view:
            view.select_run("run_1234")
            ...
    """

    def __init__(
        self,
        stream: StreamClient,
        fetch_snapshot: FetchSnapshot,
        poll_interval: float = 2.0,
        reconnect_policy: Optional[ReconnectPolicy] = None,
    ):
        self.stream = stream
        self._fetch_snapshot = fetch_snapshot
        self.poll_interval = poll_interval
        self._supervisor = ReconnectingStream(stream, reconnect_policy)
        self._unsubscribe: Optional[Callable[[], None]] = stream.subscribe(self._on_stream_event)

        self.mode = ViewMode.LIVE
        self.selected_run_id: Optional[str] = None
        self.live_agent_id: Optional[str] = None
        self.live_run_id: Optional[str] = None
        self.notice: Optional[str] = None

        self._generation = 0
        self._poller: Optional[HistoryPoller] = None
        self._timeline: Optional[Timeline] = None
        self._status = "unknown"
        self._retired: Set[asyncio.Task] = set()
        self._answered: Set[Tuple[str, str]] = set()  # request_input keys cleared optimistically
        self._listeners: List[ViewListener] = []

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def mount(self) -> "ViewController":
        """Acquire the live connection."""
        self._supervisor.start()
        return self

    async def aclose(self) -> None:
        """Release the poller and the live connection. Safe to call repeatedly."""
        self._retire_poller()
        self._generation += 1
        await self.settle()
        await self._supervisor.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def wait_stream(self) -> None:
        """Wait until the live connection is gone for good (stopped or gave up)."""
        await self._supervisor.wait()

    async def settle(self) -> None:
        """Wait for every stopped poller to finish tearing down."""
        while self._retired:
            tasks = list(self._retired)
            self._retired.difference_update(tasks)
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "ViewController":
        return await self.mount()

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # =========================================================================
    # MODE SWITCHING
    # =========================================================================

    def show_live(self, agent_id: Optional[str] = None, run_id: Optional[str] = None) -> None:
        """Switch to the live feed, optionally filtered to one agent and/or run."""
        self._retire_poller()
        self._generation += 1
        self.mode = ViewMode.LIVE
        self.selected_run_id = None
        self._timeline = None
        self._status = "unknown"
        self.live_agent_id = agent_id
        self.live_run_id = run_id
        self.notice = None
        logger.info(f"Live mode (agent={agent_id or '*'}, run={run_id or '*'})")
        self._prune_answered()
        self._notify()

    def select_run(self, run_id: str) -> None:
        """
        Switch to history mode for run_id.

        Must be called from the event loop. Stops the previous poller and
        starts a fresh, run-scoped timeline seeded from the live buffer.
        """
        self._retire_poller()
        self._generation += 1
        generation = self._generation

        self.mode = ViewMode.HISTORY
        self.selected_run_id = run_id
        self._status = "unknown"
        self.notice = None
        self._timeline = Timeline(run_id)
        self._timeline.extend(self._live_events_for(run_id))

        self._poller = HistoryPoller(
            self._fetch_snapshot,
            interval=self.poll_interval,
            on_snapshot=lambda rid, snapshot: self._apply_snapshot(generation, rid, snapshot),
        )
        self._poller.start(run_id)
        logger.info(f"History mode for run {run_id}")
        self._prune_answered()
        self._notify()

    async def refresh(self) -> bool:
        """Poll the selected run immediately. Returns True if a snapshot was applied."""
        poller = self._poller
        if poller is None:
            return False
        return await poller.poll_once()

    def _retire_poller(self) -> None:
        poller, self._poller = self._poller, None
        if poller is None:
            return
        task = poller.stop()
        if task is not None and not task.done():
            self._retired.add(task)
            task.add_done_callback(self._retired.discard)

    # =========================================================================
    # SOURCES
    # =========================================================================

    def _apply_snapshot(self, generation: int, run_id: str, snapshot: RunSnapshot) -> None:
        if generation != self._generation or run_id != self.selected_run_id or self._timeline is None:
            logger.debug(f"Discarding stale snapshot for run {run_id}")
            return
        added = self._timeline.merge_snapshot(snapshot.events)
        self._status = snapshot.status
        if added:
            logger.debug(f"Run {run_id}: {added} new event(s) from snapshot")
        self._prune_answered()
        self._notify()

    def _on_stream_event(self, event: Event) -> None:
        if self.mode is ViewMode.HISTORY and self._timeline is not None and event.run_id == self.selected_run_id:
            self._timeline.add(event)
        self._prune_answered()
        self._notify()

    def _live_events_for(self, run_id: str) -> List[Event]:
        return [e for e in self.stream.buffer.in_arrival_order() if e.run_id == run_id]

    def live_events(self) -> Tuple[Event, ...]:
        """Live buffer (newest first) with the current filters applied."""
        return tuple(
            e for e in self.stream.buffer.newest_first()
            if (self.live_agent_id is None or e.agent_id == self.live_agent_id)
            and (self.live_run_id is None or e.run_id == self.live_run_id)
        )

    def live_states(self) -> Dict[str, RunState]:
        """Resolved state of every run present in the live buffer."""
        return resolve_runs(self.stream.buffer.in_arrival_order())

    def _events_for(self, run_id: str) -> Tuple[Event, ...]:
        if self._timeline is not None and run_id == self.selected_run_id:
            return self._timeline.events
        return tuple(self._live_events_for(run_id))

    # =========================================================================
    # DERIVED STATE
    # =========================================================================

    def run_state(self, run_id: str) -> RunState:
        """Resolved state of a run from the best source the view holds."""
        return resolve(self._events_for(run_id))

    def pending_input(self, run_id: str) -> Optional[Event]:
        """The outstanding request_input event, unless it was answered optimistically."""
        request = pending_input_request(self._events_for(run_id))
        if request is None or request.key in self._answered:
            return None
        return request

    def _prune_answered(self) -> None:
        """Forget optimistic answers whose request is no longer outstanding."""
        for key in list(self._answered):
            request = pending_input_request(self._events_for(key[0]))
            if request is None or request.key != key:
                self._answered.discard(key)

    def mark_input_answered(self, request: Event) -> None:
        self._answered.add(request.key)
        self._notify()

    def restore_input(self, request: Event) -> None:
        self._answered.discard(request.key)
        self._notify()

    def post_notice(self, message: str) -> None:
        self.notice = message
        logger.warning(f"⚠️ {message}")
        self._notify()

    def clear_notice(self) -> None:
        self.notice = None
        self._notify()

    def view(self) -> RunView:
        if self.mode is ViewMode.HISTORY and self._timeline is not None:
            run_id = self.selected_run_id
            events = tuple(reversed(self._timeline.events))
            state = self._timeline.state()
            status = self._status
            stale = self._poller.stale if self._poller is not None else False
        else:
            run_id = self.live_run_id
            events = self.live_events()
            state = self.run_state(run_id) if run_id else RunState.UNKNOWN
            status = state.value
            stale = False

        prompt = None
        if run_id is not None:
            request = self.pending_input(run_id)
            if request is not None:
                prompt = input_prompt(request)

        return RunView(
            mode=self.mode,
            run_id=run_id,
            events=events,
            state=state,
            status=status,
            connected=self.stream.connected,
            stale=stale,
            input_prompt=prompt,
            notice=self.notice,
        )

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Call listener after every view change. Returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"View listener failed: {e}", exc_info=True)
