"""
Control Channel
===============
Operator commands sent back to the backend: cancel, submit input, trigger.

Commands never change the displayed run state themselves; the transition
shows up through the stream or the next poll. Submitting input clears the
prompt optimistically and restores it unless the backend accepts the value.
"""

import logging
from typing import Set

from .api_client import BackendClient
from .controller import ViewController
from .errors import BackendError, CommandRejectedError, ConsoleError, InputNotAwaitedError
from .types import RunState

logger = logging.getLogger(__name__)


def _status_code(error: ConsoleError):
    return error.status_code if isinstance(error, BackendError) else None


class ControlChannel:
    """Issues commands for runs shown by a ViewController."""

    def __init__(self, client: BackendClient, view: ViewController):
        self.client = client
        self.view = view
        self._cancelling: Set[str] = set()

    def is_cancelling(self, run_id: str) -> bool:
        return run_id in self._cancelling

    async def cancel(self, run_id: str) -> bool:
        """
        Request cancellation of a run.

        Returns False without sending when the run is already terminal or a
        cancel for it is still in flight.
        """
        state = self.view.run_state(run_id)
        if state.is_terminal:
            logger.info(f"Run {run_id} is already {state.value}; cancel ignored")
            return False
        if run_id in self._cancelling:
            logger.info(f"Cancel for run {run_id} already in flight")
            return False

        self._cancelling.add(run_id)
        logger.info(f"🛑 Cancel requested for run {run_id}")
        try:
            await self.client.cancel_run(run_id)
        except ConsoleError as e:
            self.view.post_notice(f"Cancel failed for run {run_id}: {e}")
            raise CommandRejectedError("cancel", run_id, str(e), _status_code(e)) from e
        finally:
            self._cancelling.discard(run_id)
        self.view.clear_notice()
        return True

    async def submit_input(self, run_id: str, value: str) -> None:
        """
        Answer a run's request for input.

        Raises InputNotAwaitedError (nothing sent) unless the run currently
        resolves to AWAITING_INPUT with an outstanding request.
        """
        state = self.view.run_state(run_id)
        request = self.view.pending_input(run_id)
        if state is not RunState.AWAITING_INPUT or request is None:
            raise InputNotAwaitedError(f"Run {run_id} is not awaiting input (state: {state.value})")
        if not value:
            raise ValueError("Input value must not be empty")

        self.view.mark_input_answered(request)
        accepted = False
        try:
            await self.client.submit_input(run_id, value)
            accepted = True
        except ConsoleError as e:
            self.view.post_notice(f"Input for run {run_id} was not accepted: {e}")
            raise CommandRejectedError("input", run_id, str(e), _status_code(e)) from e
        finally:
            # Rejected, failed or cancelled: the prompt comes back
            if not accepted:
                self.view.restore_input(request)
        self.view.clear_notice()
        logger.info(f"✉️ Submitted input for run {run_id}")

    async def trigger_run(self, agent_id: str) -> None:
        """Start a new run of an agent."""
        try:
            await self.client.trigger_run(agent_id)
        except ConsoleError as e:
            self.view.post_notice(f"Failed to trigger agent {agent_id}: {e}")
            raise CommandRejectedError("trigger", agent_id, str(e), _status_code(e)) from e
        self.view.clear_notice()
