"""
Forgewatch
==========
Observer/control console for an agent-orchestration backend: live event
stream, per-run history polling, lifecycle state resolution and run control.
"""

from .api_client import BackendClient
from .config import ConsoleConfig, RetryConfig, load_config
from .control import ControlChannel
from .controller import RunView, ViewController, ViewMode
from .poller import HistoryPoller
from .reconnect import ExponentialBackoff, NoReconnect, ReconnectingStream
from .resolver import resolve, resolve_runs, state_from_status
from .stream import StreamClient
from .timeline import EventBuffer, Timeline
from .types import Agent, Event, EventKind, RunSnapshot, RunState, RunSummary

__all__ = [
    "BackendClient",
    "ConsoleConfig",
    "RetryConfig",
    "load_config",
    "ControlChannel",
    "RunView",
    "ViewController",
    "ViewMode",
    "HistoryPoller",
    "ExponentialBackoff",
    "NoReconnect",
    "ReconnectingStream",
    "resolve",
    "resolve_runs",
    "state_from_status",
    "StreamClient",
    "EventBuffer",
    "Timeline",
    "Agent",
    "Event",
    "EventKind",
    "RunSnapshot",
    "RunState",
    "RunSummary",
]
