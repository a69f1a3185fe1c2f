"""
Unit tests for the backend HTTP client.
Uses a fake requests session; nothing goes over the network.
"""
import asyncio
import json

import pytest
import requests

from forgewatch.api_client import BackendClient
from forgewatch.errors import BackendError, MalformedMessageError, TransportError


def response(status=200, body=None, raw=None):
    resp = requests.Response()
    resp.status_code = status
    if raw is not None:
        resp._content = raw
    elif body is not None:
        resp._content = json.dumps(body).encode()
    else:
        resp._content = b""
    resp.encoding = "utf-8"
    resp.url = "http://backend"
    return resp


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, method, url, json=None, timeout=None):
        self.requests.append((method, url, json, timeout))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


def make_client(*responses):
    session = FakeSession(*responses)
    return BackendClient("http://backend/", timeout=5.0, session=session), session


class TestEndpoints:
    """Test request shapes and response decoding."""

    def test_list_agents(self):
        client, session = make_client(response(body={"agents": [
            {"id": "researcher", "name": "Research Agent", "description": "Collects sources"},
        ]}))
        agents = asyncio.run(client.list_agents())

        assert agents[0].id == "researcher"
        assert session.requests == [("GET", "http://backend/api/agents", None, 5.0)]

    def test_list_runs(self):
        client, _ = make_client(response(body={"runs": [{"run_id": "r1", "event_count": 3, "status": "RunCompleted"}]}))
        runs = asyncio.run(client.list_runs())
        assert runs[0].event_count == 3
        assert runs[0].status == "RunCompleted"

    def test_get_run(self):
        client, session = make_client(response(body={"events": [{
            "id": "e1", "run_id": "r/1", "agent_id": "a", "timestamp": "2026-10-17T12:00:00Z",
            "kind": "run_started", "payload": {},
        }], "status": "run_started"}))
        snapshot = asyncio.run(client.get_run("r/1"))

        assert snapshot.events[0].id == "e1"
        assert session.requests[0][1] == "http://backend/api/runs/r%2F1"

    def test_trigger_run(self):
        client, session = make_client(response(body={"run_id": "r9"}))
        asyncio.run(client.trigger_run("researcher"))
        assert session.requests[0][:2] == ("POST", "http://backend/api/agents/researcher/run")

    def test_submit_input_body(self):
        client, session = make_client(response(body={"status": "accepted"}))
        ack = asyncio.run(client.submit_input("r1", "yes"))

        assert ack.status == "accepted"
        assert session.requests[0][:3] == ("POST", "http://backend/api/runs/r1/input", {"input": "yes"})

    @pytest.mark.parametrize("resp,status,message", [
        (response(), None, None),
        (response(raw=b"cancelled"), None, "cancelled"),
        (response(body={"status": "cancelled", "run_id": "r1"}), "cancelled", None),
        (response(body=["ok"]), None, "['ok']"),
    ])
    def test_cancel_ack_is_lenient(self, resp, status, message):
        client, _ = make_client(resp)
        ack = asyncio.run(client.cancel_run("r1"))
        assert ack.status == status
        assert ack.message == message

    def test_close(self):
        client, session = make_client()
        client.close()
        assert session.closed is True


class TestErrors:
    """Test error mapping."""

    def test_non_2xx_raises_backend_error(self):
        client, _ = make_client(response(status=404, body={"detail": "Run not found"}))
        with pytest.raises(BackendError) as excinfo:
            asyncio.run(client.get_run("missing"))
        assert excinfo.value.status_code == 404
        assert excinfo.value.detail == "Run not found"

    def test_plain_text_error_body(self):
        client, _ = make_client(response(status=500, raw=b"Internal Server Error\n"))
        with pytest.raises(BackendError) as excinfo:
            asyncio.run(client.list_runs())
        assert excinfo.value.detail == "Internal Server Error"

    def test_network_error_raises_transport_error(self):
        client, _ = make_client(requests.ConnectionError("refused"))
        with pytest.raises(TransportError):
            asyncio.run(client.list_agents())

    def test_backend_error_is_transport_error(self):
        assert issubclass(BackendError, TransportError)

    def test_malformed_body(self):
        client, _ = make_client(response(body={"events": "nope"}))
        with pytest.raises(MalformedMessageError):
            asyncio.run(client.get_run("r1"))
