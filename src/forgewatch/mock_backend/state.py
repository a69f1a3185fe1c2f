"""
Mock Backend State
==================
In-memory agents and run logs for the development backend.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..resolver import resolve
from ..types import Agent, Event, EventKind, RunState, RunSummary


DEFAULT_AGENTS = [
    Agent(
        id="researcher",
        name="Research Agent",
        description="Collects sources and drafts a summary",
        trigger={"type": "manual"},
    ),
    Agent(
        id="pr-reviewer",
        name="GitHub PR Reviewer",
        description="Reviews open pull requests",
        trigger={"type": "cron", "schedule": "0 * * * *"},
    ),
]


class MockStore:
    """Agents plus an append-only event log per run."""

    def __init__(self, agents: Optional[List[Agent]] = None):
        self.agents: Dict[str, Agent] = {a.id: a for a in (agents if agents is not None else DEFAULT_AGENTS)}
        self.runs: Dict[str, List[Event]] = {}
        self.run_agents: Dict[str, str] = {}

    def create_run(self, agent_id: str) -> str:
        run_id = str(uuid.uuid4())
        self.runs[run_id] = []
        self.run_agents[run_id] = agent_id
        return run_id

    def append(self, run_id: str, kind: EventKind, payload: Any = None) -> Event:
        event = Event(
            id=str(uuid.uuid4()),
            run_id=run_id,
            agent_id=self.run_agents[run_id],
            timestamp=datetime.now(timezone.utc).isoformat(),
            kind=kind.value,
            payload=payload if payload is not None else {},
        )
        self.runs[run_id].append(event)
        return event

    def status(self, run_id: str) -> str:
        """Last event kind, the way the original backend reports status."""
        events = self.runs[run_id]
        return events[-1].kind if events else "unknown"

    def state(self, run_id: str) -> RunState:
        return resolve(self.runs[run_id])

    def summaries(self) -> List[RunSummary]:
        return [
            RunSummary(run_id=run_id, event_count=len(events), status=self.status(run_id))
            for run_id, events in self.runs.items()
        ]
