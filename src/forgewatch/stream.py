"""
Live Event Stream
=================
WebSocket client that owns one push connection to the backend's event
stream and feeds a bounded EventBuffer.

A closed connection is not retried here; see reconnect.ReconnectingStream.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed, WebSocketException

from .errors import MalformedMessageError, TransportError
from .timeline import EventBuffer
from .types import Event

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]
EventListener = Callable[[Event], None]


def parse_event(raw: Union[str, bytes]) -> Event:
    """Parse one stream message into an Event."""
    try:
        return Event.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedMessageError(f"{e.error_count()} validation error(s): {e.errors()[0]['msg']}") from e


class StreamClient:
    """
    One live connection to the event stream.

    Usage:
        async with StreamClient(url) as stream:
            stream.subscribe(on_event)
            await stream.wait_closed()
    """

    def __init__(
        self,
        url: str,
        buffer: Optional[EventBuffer] = None,
        capacity: int = 100,
        connector: Optional[Connector] = None,
    ):
        self.url = url
        self.buffer = buffer if buffer is not None else EventBuffer(capacity)
        self._connector = connector or websockets.connect
        self._socket: Any = None
        self._receiver: Optional[asyncio.Task] = None
        self._connected = False
        self._closed = asyncio.Event()
        self._closed.set()
        self._listeners: List[EventListener] = []
        self.dropped = 0  # malformed messages discarded
        self.received = 0  # events delivered, across connections

    @property
    def connected(self) -> bool:
        return self._connected

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a per-event callback. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def connect(self) -> "StreamClient":
        """Open the connection and start the receive loop."""
        if self._receiver is not None and not self._receiver.done():
            return self

        try:
            socket = await self._connector(self.url)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning(f"Failed to connect to event stream {self.url}: {e}")
            raise TransportError(f"connect to {self.url} failed: {e}") from e

        self._socket = socket
        self._connected = True
        self._closed.clear()
        self._receiver = asyncio.create_task(self._receive_loop(socket))
        logger.info(f"🔌 Connected to event stream {self.url}")
        return self

    async def _receive_loop(self, socket: Any) -> None:
        try:
            async for message in socket:
                self._handle_message(message)
        except ConnectionClosed as e:
            logger.warning(f"Event stream closed unexpectedly: {e}")
        except OSError as e:
            logger.warning(f"Event stream transport error: {e}")
        except Exception as e:
            logger.error(f"Event stream receive loop failed: {e}", exc_info=True)
        finally:
            self._connected = False
            self._closed.set()
            logger.info(f"Disconnected from event stream {self.url}")

    def _handle_message(self, message: Union[str, bytes]) -> None:
        try:
            event = parse_event(message)
        except MalformedMessageError as e:
            self.dropped += 1
            logger.warning(f"Dropping malformed stream message: {e}")
            return

        # Single writer: only the receive path touches the buffer
        self.buffer.push(event)
        self.received += 1

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Stream listener failed on event {event.id}: {e}", exc_info=True)

    async def wait_closed(self) -> None:
        """Wait until the receive loop has ended."""
        await self._closed.wait()

    async def close(self) -> None:
        """Close the connection. Safe to call repeatedly."""
        socket, self._socket = self._socket, None
        receiver, self._receiver = self._receiver, None

        if socket is not None:
            try:
                await socket.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"Ignoring error while closing stream socket: {e}")

        if receiver is not None and receiver is not asyncio.current_task():
            receiver.cancel()
            try:
                await receiver
            except asyncio.CancelledError:
                pass

        self._connected = False
        self._closed.set()

    async def __aenter__(self) -> "StreamClient":
        return await self.connect()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
