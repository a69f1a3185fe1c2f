"""
Unit tests for the run state resolver.
Covers the transition table, terminal absorption, replay safety and the
status/prompt helpers.
"""
import pytest

from conftest import make_event
from forgewatch.resolver import (
    input_prompt,
    next_state,
    normalize_kind,
    pending_input_request,
    resolve,
    resolve_runs,
    state_from_status,
)
from forgewatch.types import RunState


def run_of(*kinds, run_id="run-1"):
    return [make_event(run_id, f"e{i}", kind) for i, kind in enumerate(kinds)]


class TestResolve:
    """Test resolve over ordered event sequences."""

    def test_empty_log_is_unknown(self):
        """No event means unknown, never an assumed ACTIVE."""
        assert resolve([]) is RunState.UNKNOWN

    def test_unrecognized_kinds_alone_stay_unknown(self):
        assert resolve(run_of("plan_generated", "action_taken")) is RunState.UNKNOWN

    def test_awaiting_input(self):
        assert resolve(run_of("run_started", "action_taken", "request_input")) is RunState.AWAITING_INPUT

    def test_post_terminal_event_ignored(self):
        assert resolve(run_of("run_started", "run_completed", "action_taken")) is RunState.COMPLETED

    @pytest.mark.parametrize("kind,expected", [
        ("run_completed", RunState.COMPLETED),
        ("run_failed", RunState.FAILED),
        ("run_cancelled", RunState.CANCELLED),
    ])
    def test_terminal_is_idempotent(self, kind, expected):
        """Appending anything after a terminal kind never changes the result."""
        base = run_of("run_started", kind)
        assert resolve(base) is expected
        for extra in ("run_started", "resume", "request_input", "run_failed", "run_completed", "whatever"):
            extended = base + [make_event("run-1", f"x-{extra}", extra)]
            assert resolve(extended) is expected

    def test_pause_and_resume(self):
        assert resolve(run_of("run_started", "run_paused")) is RunState.PAUSED
        assert resolve(run_of("run_started", "run_paused", "resume")) is RunState.ACTIVE

    def test_input_received_resumes_awaiting_run(self):
        assert resolve(run_of("run_started", "request_input", "input_received")) is RunState.ACTIVE

    def test_resume_does_not_leave_unknown(self):
        """resume/input_received only apply to PAUSED or AWAITING_INPUT."""
        assert resolve(run_of("resume")) is RunState.UNKNOWN
        assert resolve(run_of("input_received")) is RunState.UNKNOWN

    def test_run_started_reactivates_paused_run(self):
        assert resolve(run_of("run_started", "run_paused", "run_started")) is RunState.ACTIVE

    def test_request_input_as_first_event(self):
        assert resolve(run_of("request_input")) is RunState.AWAITING_INPUT

    def test_cancel_while_awaiting_input(self):
        assert resolve(run_of("run_started", "request_input", "run_cancelled")) is RunState.CANCELLED

    def test_camel_case_kinds(self):
        """Kinds spelled the way some backends serialize them still resolve."""
        assert resolve(run_of("RunStarted", "RequestInput")) is RunState.AWAITING_INPUT
        assert resolve(run_of("RunStarted", "RunCompleted")) is RunState.COMPLETED

    def test_replay_safe(self):
        """Resolving the same prefix twice, or re-feeding seen events, gives the same answer."""
        events = run_of("run_started", "request_input", "input_received", "run_paused")
        assert resolve(events) is resolve(list(events))
        assert resolve(events + events[3:]) is RunState.PAUSED

    def test_arrival_order_not_timestamp_order(self):
        first = make_event("run-1", "a", "run_completed").model_copy(update={"timestamp": "2026-10-17T12:00:05+00:00"})
        second = make_event("run-1", "b", "run_started").model_copy(update={"timestamp": "2026-10-17T12:00:01+00:00"})
        assert resolve([first, second]) is RunState.COMPLETED


class TestNextState:
    """Test the single-step reducer."""

    def test_terminal_absorbs(self):
        assert next_state(RunState.FAILED, "run_started") is RunState.FAILED

    def test_unknown_kind_keeps_state(self):
        assert next_state(RunState.PAUSED, "budget_warning") is RunState.PAUSED

    def test_resume_on_active_is_noop(self):
        assert next_state(RunState.ACTIVE, "resume") is RunState.ACTIVE


class TestResolveRuns:
    """Test resolution of interleaved runs."""

    def test_interleaved(self):
        events = [
            make_event("a", "1", "run_started"),
            make_event("b", "1", "run_started"),
            make_event("a", "2", "request_input"),
            make_event("b", "2", "run_failed"),
            make_event("b", "3", "run_started"),
        ]
        states = resolve_runs(events)
        assert states == {"a": RunState.AWAITING_INPUT, "b": RunState.FAILED}


class TestPendingInput:
    """Test detection of the outstanding request_input event."""

    def test_returns_latest_request(self):
        events = [
            make_event("r", "1", "run_started"),
            make_event("r", "2", "request_input", {"prompt": "first?"}),
            make_event("r", "3", "input_received"),
            make_event("r", "4", "request_input", {"prompt": "second?"}),
        ]
        request = pending_input_request(events)
        assert request is not None
        assert request.id == "4"
        assert input_prompt(request) == "second?"

    def test_none_once_answered(self):
        events = run_of("run_started", "request_input", "input_received")
        assert pending_input_request(events) is None

    def test_none_after_terminal(self):
        events = run_of("run_started", "request_input", "run_cancelled")
        assert pending_input_request(events) is None

    def test_prompt_fallbacks(self):
        assert input_prompt(make_event("r", "1", "request_input", {"question": "Deploy?"})) == "Deploy?"
        assert input_prompt(make_event("r", "1", "request_input", "Continue?")) == "Continue?"
        assert input_prompt(make_event("r", "1", "request_input", {})) == "Agent is requesting input"


class TestStatusMapping:
    """Test best-effort mapping of backend status tags."""

    @pytest.mark.parametrize("status,expected", [
        ("run_completed", RunState.COMPLETED),
        ("RunCompleted", RunState.COMPLETED),
        ("RunFailed", RunState.FAILED),
        ("Cancelled", RunState.CANCELLED),
        ("run_started", RunState.ACTIVE),
        ("request_input", RunState.AWAITING_INPUT),
        ("running", RunState.ACTIVE),
        ("awaiting_input", RunState.AWAITING_INPUT),
        ("action_executed", RunState.UNKNOWN),
        ("", RunState.UNKNOWN),
        (None, RunState.UNKNOWN),
    ])
    def test_status_to_state(self, status, expected):
        assert state_from_status(status) is expected

    def test_normalize_kind(self):
        assert normalize_kind("RunCompleted") == "run_completed"
        assert normalize_kind(" run_completed ") == "run_completed"
        assert normalize_kind("ActionFailed") == "action_failed"
