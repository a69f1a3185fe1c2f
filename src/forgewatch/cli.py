"""
Forgewatch — Entry Point
========================
Version 1.0 — October 2026

Command-line console for the orchestration backend.

Usage:
    forgewatch runs
    forgewatch live --run <run_id>
    forgewatch watch <run_id>
    forgewatch input <run_id> "yes, go ahead"
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set, Tuple

from .api_client import BackendClient
from .config import ConsoleConfig, load_config
from .control import ControlChannel
from .controller import ViewController
from .errors import ConsoleError, InputNotAwaitedError
from .reconnect import ExponentialBackoff, NoReconnect
from .resolver import state_from_status
from .stream import StreamClient
from .types import Event, RunState

logger = logging.getLogger("forgewatch")

EXIT_OK = 0
EXIT_COMMAND_FAILED = 1
EXIT_REFUSED = 2


# =============================================================================
# FORMATTING
# =============================================================================

def format_kind(kind: str) -> str:
    """'run_started' -> 'Run Started'."""
    return " ".join(word.capitalize() for word in kind.split("_"))


def short_id(run_id: str) -> str:
    return run_id.split("-")[0][:8]


def format_time(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).strftime("%H:%M:%S")
    except ValueError:
        return timestamp


def format_event(event: Event) -> str:
    payload = json.dumps(event.payload, default=str) if event.payload not in (None, {}) else ""
    return f"{format_time(event.timestamp)}  {format_kind(event.kind):<18} run={short_id(event.run_id)}  {payload}".rstrip()


# =============================================================================
# CONSOLE WIRING
# =============================================================================

class Console:
    """Client, stream, view and control channel built from one config."""

    def __init__(self, config: ConsoleConfig):
        self.config = config
        self.client = BackendClient(config.base_url, timeout=config.request_timeout)
        self.stream = StreamClient(config.stream_url, capacity=config.buffer_capacity)
        policy = ExponentialBackoff.from_config(config.retry_config) if config.reconnect else NoReconnect()
        self.view = ViewController(
            self.stream,
            self.client.get_run,
            poll_interval=config.poll_interval,
            reconnect_policy=policy,
        )
        self.control = ControlChannel(self.client, self.view)

    async def aclose(self) -> None:
        await self.view.aclose()
        self.client.close()


# =============================================================================
# COMMANDS
# =============================================================================

async def cmd_agents(console: Console, args: argparse.Namespace) -> int:
    agents = await console.client.list_agents()
    if not agents:
        print("No agents found")
    for agent in agents:
        print(f"{agent.id:<24} {agent.name:<28} {agent.description}")
    return EXIT_OK


async def cmd_runs(console: Console, args: argparse.Namespace) -> int:
    runs = await console.client.list_runs()
    if not runs:
        print("No runs found")
    for run in runs:
        state = state_from_status(run.status)
        print(f"{run.run_id:<38} {state.value:<15} {run.event_count:>5} events  ({run.status})")
    return EXIT_OK


async def cmd_trigger(console: Console, args: argparse.Namespace) -> int:
    await console.control.trigger_run(args.agent_id)
    print(f"Run triggered for agent {args.agent_id}")
    return EXIT_OK


async def cmd_cancel(console: Console, args: argparse.Namespace) -> int:
    console.view.select_run(args.run_id)
    await console.view.refresh()
    state = console.view.run_state(args.run_id)
    if state.is_terminal:
        print(f"Run {args.run_id} is already {state.value}")
        return EXIT_REFUSED
    await console.control.cancel(args.run_id)
    print(f"Cancel requested for run {args.run_id}")
    return EXIT_OK


async def cmd_input(console: Console, args: argparse.Namespace) -> int:
    console.view.select_run(args.run_id)
    await console.view.refresh()
    try:
        await console.control.submit_input(args.run_id, args.value)
    except (InputNotAwaitedError, ValueError) as e:
        print(f"Refused: {e}", file=sys.stderr)
        return EXIT_REFUSED
    print(f"Input submitted to run {args.run_id}")
    return EXIT_OK


async def cmd_live(console: Console, args: argparse.Namespace) -> int:
    view = console.view
    view.show_live(agent_id=args.agent, run_id=args.run)
    states: Dict[str, RunState] = {}

    def on_event(event: Event) -> None:
        if (args.agent is not None and event.agent_id != args.agent) or (args.run is not None and event.run_id != args.run):
            return
        print(format_event(event), flush=True)
        state = view.live_states().get(event.run_id, RunState.UNKNOWN)
        if states.get(event.run_id) is not state:
            states[event.run_id] = state
            print(f"-- run {short_id(event.run_id)}: {state.value}", flush=True)

    console.stream.subscribe(on_event)
    await view.mount()
    print(f"Streaming from {console.config.stream_url} (Ctrl+C to stop)", flush=True)
    await view.wait_stream()
    print("Disconnected", file=sys.stderr)
    return EXIT_COMMAND_FAILED


async def cmd_watch(console: Console, args: argparse.Namespace) -> int:
    view = console.view
    finished = asyncio.Event()
    printed: Set[Tuple[str, str]] = set()
    last: Dict[str, Any] = {"state": None, "prompt": None}

    def on_change() -> None:
        current = view.view()
        if current.run_id != args.run_id:
            return
        for event in reversed(current.events):
            if event.key not in printed:
                printed.add(event.key)
                print(format_event(event), flush=True)
        if current.state is not last["state"]:
            last["state"] = current.state
            print(f"-- state: {current.state.value}", flush=True)
        if current.input_prompt != last["prompt"]:
            last["prompt"] = current.input_prompt
            if current.input_prompt:
                print(f"-- input requested: {current.input_prompt}", flush=True)
        if current.state.is_terminal:
            finished.set()

    view.add_listener(on_change)
    await view.mount()
    view.select_run(args.run_id)
    await finished.wait()
    return EXIT_OK


COMMANDS: Dict[str, Callable] = {
    "agents": cmd_agents,
    "runs": cmd_runs,
    "trigger": cmd_trigger,
    "cancel": cmd_cancel,
    "input": cmd_input,
    "live": cmd_live,
    "watch": cmd_watch,
}


# =============================================================================
# MAIN
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="forgewatch", description="Observer/control console for agent runs")
    parser.add_argument("--base-url", help="Backend origin (default: FORGEWATCH_BASE_URL or http://localhost:3000)")
    parser.add_argument("--poll-interval", type=float, help="History poll interval in seconds")
    parser.add_argument("--no-reconnect", action="store_true", help="Do not reconnect a dropped stream")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("agents", help="List agents")
    sub.add_parser("runs", help="List runs")

    trigger = sub.add_parser("trigger", help="Start a run of an agent")
    trigger.add_argument("agent_id")

    cancel = sub.add_parser("cancel", help="Cancel a run")
    cancel.add_argument("run_id")

    submit = sub.add_parser("input", help="Answer a run's request for input")
    submit.add_argument("run_id")
    submit.add_argument("value")

    live = sub.add_parser("live", help="Stream live events")
    live.add_argument("--run", help="Only show this run")
    live.add_argument("--agent", help="Only show this agent")

    watch = sub.add_parser("watch", help="Follow one run until it finishes")
    watch.add_argument("run_id")

    return parser


def apply_overrides(config: ConsoleConfig, args: argparse.Namespace) -> ConsoleConfig:
    if args.base_url:
        config.base_url = args.base_url.rstrip("/")
    if args.poll_interval is not None:
        config.poll_interval = args.poll_interval
    if args.no_reconnect:
        config.reconnect = False
    if args.verbose:
        config.log_level = "DEBUG"
    return config.validate()


async def run_command(config: ConsoleConfig, args: argparse.Namespace) -> int:
    console = Console(config)
    try:
        return await COMMANDS[args.command](console, args)
    except ConsoleError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_COMMAND_FAILED
    finally:
        await console.aclose()


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = apply_overrides(load_config(), args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_REFUSED

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("websockets").setLevel(logging.WARNING)

    try:
        return asyncio.run(run_command(config, args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
