"""
Unit tests for the live stream client.
Uses an injected connector so no real socket is opened.
"""
import asyncio

import pytest

from conftest import FakeConnector, FakeSocket, event_json, pump
from forgewatch.errors import MalformedMessageError, TransportError
from forgewatch.stream import StreamClient, parse_event


class TestParseEvent:
    """Test stream message parsing."""

    def test_valid_message(self):
        event = parse_event(event_json("run-1", "e1", "run_started", {"reason": "manual"}))
        assert event.run_id == "run-1"
        assert event.kind == "run_started"
        assert event.payload == {"reason": "manual"}

    def test_bytes_message(self):
        event = parse_event(event_json("run-1", "e1", "run_started").encode())
        assert event.id == "e1"

    @pytest.mark.parametrize("raw", [
        "not json",
        '{"id": "e1"}',
        "[]",
        '{"id": "e1", "run_id": "r", "agent_id": "a", "timestamp": "t"}',
    ])
    def test_malformed(self, raw):
        with pytest.raises(MalformedMessageError):
            parse_event(raw)


class TestStreamClient:
    """Test connect, receive and close."""

    def test_receives_into_buffer_newest_first(self):
        async def scenario():
            socket = FakeSocket([
                event_json("r", "1", "run_started"),
                event_json("r", "2", "request_input"),
            ])
            stream = StreamClient("ws://test/api/ws", connector=FakeConnector(socket))
            await stream.connect()
            await stream.wait_closed()
            return stream

        stream = asyncio.run(scenario())
        assert [e.id for e in stream.buffer.newest_first()] == ["2", "1"]
        assert stream.received == 2
        assert stream.connected is False

    def test_malformed_message_dropped(self):
        """A bad frame is discarded; the connection stays up and later events arrive."""
        async def scenario():
            socket = FakeSocket(hold_open=True)
            stream = StreamClient("ws://test/api/ws", connector=FakeConnector(socket))
            await stream.connect()
            socket.feed("{broken")
            socket.feed(event_json("r", "1", "run_started"))
            await pump()
            connected = stream.connected
            await stream.close()
            return stream, connected

        stream, connected = asyncio.run(scenario())
        assert connected is True
        assert stream.dropped == 1
        assert stream.received == 1
        assert len(stream.buffer) == 1

    def test_buffer_bounded(self):
        async def scenario():
            socket = FakeSocket([event_json("r", str(i), "action_taken") for i in range(105)])
            stream = StreamClient("ws://test/api/ws", capacity=100, connector=FakeConnector(socket))
            await stream.connect()
            await stream.wait_closed()
            return stream

        stream = asyncio.run(scenario())
        assert len(stream.buffer) == 100
        assert stream.buffer.newest_first()[0].id == "104"

    def test_listeners_called_and_isolated(self):
        """A failing listener doesn't stop the others or the buffer."""
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        async def scenario():
            stream = StreamClient("ws://test/api/ws", connector=FakeConnector(FakeSocket([event_json("r", "1", "run_started")])))
            stream.subscribe(broken)
            unsubscribe = stream.subscribe(lambda e: seen.append(e.id))
            await stream.connect()
            await stream.wait_closed()
            unsubscribe()
            return stream

        stream = asyncio.run(scenario())
        assert seen == ["1"]
        assert len(stream.buffer) == 1

    def test_connect_failure_raises_transport_error(self):
        async def scenario():
            stream = StreamClient("ws://test/api/ws", connector=FakeConnector(OSError("refused")))
            with pytest.raises(TransportError):
                await stream.connect()
            return stream

        stream = asyncio.run(scenario())
        assert stream.connected is False

    def test_close_is_idempotent(self):
        async def scenario():
            socket = FakeSocket(hold_open=True)
            stream = StreamClient("ws://test/api/ws", connector=FakeConnector(socket))
            async with stream:
                assert stream.connected is True
            await stream.close()
            return stream, socket

        stream, socket = asyncio.run(scenario())
        assert socket.closed is True
        assert stream.connected is False

    def test_receive_error_marks_disconnected(self):
        async def scenario():
            socket = FakeSocket([event_json("r", "1", "run_started"), OSError("reset")], hold_open=True)
            connector = FakeConnector(socket)
            stream = StreamClient("ws://test/api/ws", connector=connector)
            await stream.connect()
            await asyncio.wait_for(stream.wait_closed(), timeout=1)
            return stream, connector

        stream, connector = asyncio.run(scenario())
        assert stream.connected is False
        assert len(stream.buffer) == 1
        assert connector.urls == ["ws://test/api/ws"]
