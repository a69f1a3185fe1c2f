"""
Forgewatch — Type Definitions
=============================
Value objects exchanged with the backend. Every model is frozen: instances
are never mutated in place, only replaced.
"""

from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict


# =============================================================================
# ENUMS
# =============================================================================

class RunState(str, Enum):
    """Lifecycle state derived from a run's event log."""
    UNKNOWN = "unknown"                # No lifecycle event observed yet
    ACTIVE = "active"
    PAUSED = "paused"
    AWAITING_INPUT = "awaiting_input"  # HITL: run waits for operator input
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({RunState.CANCELLED, RunState.COMPLETED, RunState.FAILED})


class EventKind(str, Enum):
    """Known event kinds. Event.kind stays a plain string; this set is open."""
    # Lifecycle
    RUN_STARTED = "run_started"
    RUN_PAUSED = "run_paused"
    REQUEST_INPUT = "request_input"
    INPUT_RECEIVED = "input_received"
    RESUME = "resume"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"
    RUN_CANCELLED = "run_cancelled"

    # Activity (display only)
    TRIGGER_FIRED = "trigger_fired"
    PLAN_GENERATED = "plan_generated"
    ACTION_PROPOSED = "action_proposed"
    ACTION_APPROVED = "action_approved"
    ACTION_DENIED = "action_denied"
    ACTION_EXECUTED = "action_executed"
    ACTION_FAILED = "action_failed"
    BUDGET_WARNING = "budget_warning"
    BUDGET_EXCEEDED = "budget_exceeded"


# =============================================================================
# MODELS
# =============================================================================

class Event(BaseModel):
    """One entry of a run's event log."""
    model_config = ConfigDict(frozen=True)

    id: str
    run_id: str
    agent_id: str
    timestamp: str
    kind: str
    payload: Any = None

    @property
    def key(self) -> Tuple[str, str]:
        """Identity of the event; ids are only unique within a run."""
        return (self.run_id, self.id)


class RunSummary(BaseModel):
    """Backend-computed summary from the run list endpoint."""
    model_config = ConfigDict(frozen=True)

    run_id: str
    event_count: int = 0
    status: str = "unknown"


class Agent(BaseModel):
    """Agent directory entry."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    trigger: Any = None


class RunSnapshot(BaseModel):
    """Full snapshot of one run, as returned by GET /api/runs/{id}."""
    model_config = ConfigDict(frozen=True)

    events: List[Event] = []
    status: str = "unknown"


class AgentList(BaseModel):
    agents: List[Agent] = []


class RunList(BaseModel):
    runs: List[RunSummary] = []


class InputSubmission(BaseModel):
    """Body of POST /api/runs/{id}/input."""
    input: str


class CommandAck(BaseModel):
    """Loose acknowledgement body for cancel/input; the backend may send nothing."""
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    message: Optional[str] = None
