"""
Event Buffer & Timeline
=======================
Containers for events coming from the two sources.

EventBuffer is the bounded live feed written only by the stream's receive
path. Timeline is the canonical, id-deduplicated log of one run, merged from
poll snapshots and live events.
"""

import logging
from collections import deque
from typing import Deque, Dict, Iterable, Tuple

from .resolver import resolve
from .types import Event, RunState

logger = logging.getLogger(__name__)


class EventBuffer:
    """
    Fixed-capacity feed, newest first.

    Pushing beyond capacity evicts the oldest event. Readers get tuples, so
    they never observe a partial write.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._events: Deque[Event] = deque(maxlen=capacity)

    def push(self, event: Event) -> None:
        self._events.appendleft(event)

    def newest_first(self) -> Tuple[Event, ...]:
        return tuple(self._events)

    def in_arrival_order(self) -> Tuple[Event, ...]:
        return tuple(reversed(self._events))

    def __len__(self) -> int:
        return len(self._events)


class Timeline:
    """
    Canonical event log for a single run.

    - Keyed by (run_id, event id); duplicates from either source are ignored
    - A poll snapshot fixes the order of the events it contains
    - Live events the snapshot has not caught up with follow, in arrival order
    - Events of any other run are rejected
    """

    def __init__(self, run_id: str):
        self.run_id = run_id
        self._events: Dict[Tuple[str, str], Event] = {}  # insertion-ordered

    def add(self, event: Event) -> bool:
        """Append a live event. Returns False if it was rejected or already known."""
        if event.run_id != self.run_id:
            logger.debug(f"Timeline {self.run_id}: rejecting event {event.id} of run {event.run_id}")
            return False
        if event.key in self._events:
            return False
        self._events[event.key] = event
        return True

    def extend(self, events: Iterable[Event]) -> int:
        return sum(1 for event in events if self.add(event))

    def merge_snapshot(self, events: Iterable[Event]) -> int:
        """
        Merge a full poll snapshot.

        Returns the number of events that were not in the timeline before.
        """
        merged: Dict[Tuple[str, str], Event] = {}
        for event in events:
            if event.run_id != self.run_id:
                logger.debug(f"Timeline {self.run_id}: snapshot carried foreign event {event.id}")
                continue
            merged.setdefault(event.key, event)

        added = sum(1 for key in merged if key not in self._events)

        # Stream-only events keep their relative order after the snapshot
        for key, event in self._events.items():
            if key not in merged:
                merged[key] = event

        self._events = merged
        return added

    @property
    def events(self) -> Tuple[Event, ...]:
        """All events in canonical order (oldest first)."""
        return tuple(self._events.values())

    def state(self) -> RunState:
        return resolve(self._events.values())

    def __contains__(self, event: Event) -> bool:
        return event.key in self._events

    def __len__(self) -> int:
        return len(self._events)
