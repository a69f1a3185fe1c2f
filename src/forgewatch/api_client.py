"""
Backend HTTP Client
===================
Thin client for the backend's REST surface. Requests are made with a
requests.Session in a worker thread so the event loop never blocks.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from pydantic import BaseModel, ValidationError

from .errors import BackendError, MalformedMessageError, TransportError
from .types import Agent, AgentList, CommandAck, InputSubmission, RunList, RunSnapshot, RunSummary

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(value, safe="")


class BackendClient:
    """
    Client for the backend's /api endpoints.

    Every public method is a coroutine. Failures raise TransportError
    (BackendError for non-2xx answers) or MalformedMessageError.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> requests.Response:
        url = self.url(path)
        try:
            response = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if not response.ok:
            raise BackendError(response.status_code, _error_detail(response))
        return response

    async def _call(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> requests.Response:
        logger.debug(f"{method} {path}")
        return await asyncio.to_thread(self._request, method, path, body)

    @staticmethod
    def _parse(response: requests.Response, model: type) -> BaseModel:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedMessageError(f"Unexpected {model.__name__} body from {response.url}: {e}") from e

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    async def list_agents(self) -> List[Agent]:
        response = await self._call("GET", "/api/agents")
        return list(self._parse(response, AgentList).agents)

    async def trigger_run(self, agent_id: str) -> None:
        """Start a run of an agent. The backend only signals success or failure."""
        await self._call("POST", f"/api/agents/{_segment(agent_id)}/run")
        logger.info(f"▶️ Triggered run for agent {agent_id}")

    async def list_runs(self) -> List[RunSummary]:
        response = await self._call("GET", "/api/runs")
        return list(self._parse(response, RunList).runs)

    async def get_run(self, run_id: str) -> RunSnapshot:
        response = await self._call("GET", f"/api/runs/{_segment(run_id)}")
        return self._parse(response, RunSnapshot)

    async def cancel_run(self, run_id: str) -> CommandAck:
        response = await self._call("POST", f"/api/runs/{_segment(run_id)}/cancel")
        return _ack(response)

    async def submit_input(self, run_id: str, value: str) -> CommandAck:
        body = InputSubmission(input=value).model_dump()
        response = await self._call("POST", f"/api/runs/{_segment(run_id)}/input", body)
        return _ack(response)

    def close(self) -> None:
        self.session.close()


def _ack(response: requests.Response) -> CommandAck:
    """Acknowledgement bodies are optional; anything non-JSON counts as a bare ack."""
    if not response.content:
        return CommandAck()
    try:
        data = response.json()
    except ValueError:
        return CommandAck(message=response.text)
    if isinstance(data, dict):
        try:
            return CommandAck.model_validate(data)
        except ValidationError:
            pass
    return CommandAck(message=str(data))


def _error_detail(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(data, dict):
        for key in ("detail", "error", "message"):
            if data.get(key):
                return str(data[key])
    return str(data)
