"""
Console Errors
==============
Exception hierarchy for the console. Transport and malformed-message errors
are recovered locally; command errors are surfaced to the operator.
"""

from typing import Optional


class ConsoleError(Exception):
    """Base class for every error raised by forgewatch."""


class TransportError(ConsoleError):
    """Connect failure, fetch failure or unexpected close."""


class BackendError(TransportError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}" if detail else f"HTTP {status_code}")


class MalformedMessageError(ConsoleError):
    """An event or response body could not be parsed."""


class CommandRejectedError(ConsoleError):
    """A cancel, input or trigger command failed."""

    def __init__(self, command: str, target: str, reason: str, status_code: Optional[int] = None):
        self.command = command
        self.target = target
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{command} {target} rejected: {reason}")


class InputNotAwaitedError(ConsoleError):
    """Input was submitted for a run that is not awaiting input."""
