"""
Run State Resolver
==================
Pure, table-driven reduction of an ordered event log to a RunState.

Events are folded in arrival order (the order the backend emitted them),
not timestamp order. Terminal states absorb every later event, so resolving
a log, or that log extended with events already seen, is replay-safe.
"""

import re
from typing import Any, Dict, Iterable, Optional

from .types import Event, EventKind, RunState


# =============================================================================
# TRANSITION TABLE
# =============================================================================

# Kinds that move any non-terminal state to a fixed target
_TRANSITIONS: Dict[str, RunState] = {
    EventKind.RUN_STARTED.value: RunState.ACTIVE,
    EventKind.RUN_PAUSED.value: RunState.PAUSED,
    EventKind.REQUEST_INPUT.value: RunState.AWAITING_INPUT,
    EventKind.RUN_COMPLETED.value: RunState.COMPLETED,
    EventKind.RUN_FAILED.value: RunState.FAILED,
    EventKind.RUN_CANCELLED.value: RunState.CANCELLED,
}

# Kinds that only resume a suspended run
_RESUME_KINDS = frozenset({EventKind.INPUT_RECEIVED.value, EventKind.RESUME.value})
_RESUMABLE = frozenset({RunState.PAUSED, RunState.AWAITING_INPUT})

# Status tags the backend may report that are not event kinds
_STATUS_ALIASES: Dict[str, RunState] = {
    "running": RunState.ACTIVE,
    "canceled": RunState.CANCELLED,
    "interrupted": RunState.PAUSED,
    "waiting_human": RunState.AWAITING_INPUT,
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_kind(kind: str) -> str:
    """'RunCompleted', 'run_completed' and ' Run_Completed ' all become 'run_completed'."""
    return _CAMEL_BOUNDARY.sub("_", kind.strip()).lower()


# =============================================================================
# REDUCER
# =============================================================================

def next_state(state: RunState, kind: str) -> RunState:
    """Apply one event kind to a state."""
    if state.is_terminal:
        return state

    kind = normalize_kind(kind)
    target = _TRANSITIONS.get(kind)
    if target is not None:
        return target
    if kind in _RESUME_KINDS and state in _RESUMABLE:
        return RunState.ACTIVE
    # Unrecognized kinds stay in the log but not in the projection
    return state


def resolve(events: Iterable[Event]) -> RunState:
    """Fold an ordered event sequence (one run) into its RunState."""
    state = RunState.UNKNOWN
    for event in events:
        state = next_state(state, event.kind)
        if state.is_terminal:
            break
    return state


def resolve_runs(events: Iterable[Event]) -> Dict[str, RunState]:
    """Resolve an interleaved multi-run sequence, keeping per-run arrival order."""
    states: Dict[str, RunState] = {}
    for event in events:
        states[event.run_id] = next_state(states.get(event.run_id, RunState.UNKNOWN), event.kind)
    return states


def pending_input_request(events: Iterable[Event]) -> Optional[Event]:
    """
    Return the request_input event the run is currently waiting on.

    None unless the resolved state is AWAITING_INPUT.
    """
    state = RunState.UNKNOWN
    request: Optional[Event] = None
    for event in events:
        new_state = next_state(state, event.kind)
        if new_state is RunState.AWAITING_INPUT and normalize_kind(event.kind) == EventKind.REQUEST_INPUT.value:
            request = event
        state = new_state
        if state.is_terminal:
            break
    return request if state is RunState.AWAITING_INPUT else None


def input_prompt(event: Event) -> str:
    """Operator-facing question carried by a request_input event."""
    payload: Any = event.payload
    if isinstance(payload, dict):
        for key in ("prompt", "question", "message", "text"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    elif isinstance(payload, str) and payload:
        return payload
    return "Agent is requesting input"


def state_from_status(status: Optional[str]) -> RunState:
    """
    Best-effort mapping of a backend status tag to a RunState.

    The run list reports whatever the backend computed (often the last event
    kind), so this is for display only and never feeds the resolver.
    """
    if not status:
        return RunState.UNKNOWN
    tag = normalize_kind(status)
    if tag in _TRANSITIONS:
        return _TRANSITIONS[tag]
    if tag in _RESUME_KINDS:
        return RunState.ACTIVE
    if tag in _STATUS_ALIASES:
        return _STATUS_ALIASES[tag]
    try:
        return RunState(tag)
    except ValueError:
        return RunState.UNKNOWN
