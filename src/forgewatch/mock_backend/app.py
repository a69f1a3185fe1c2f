"""
Mock Backend App
================
FastAPI app serving the backend's HTTP/WebSocket surface from memory, for
running the console locally without the real orchestrator.

Scripted lifecycle:
    trigger -> run_started, plan_generated, request_input
    input   -> input_received, action_executed, run_completed
    cancel  -> run_cancelled
"""

import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, WebSocket, WebSocketDisconnect

from ..types import EventKind, InputSubmission, RunState
from .state import MockStore
from .websocket import ConnectionManager

logger = logging.getLogger(__name__)


def create_app(store: Optional[MockStore] = None) -> FastAPI:
    store = store if store is not None else MockStore()
    manager = ConnectionManager()
    router = APIRouter(prefix="/api")

    async def emit(run_id: str, kind: EventKind, payload=None) -> None:
        event = store.append(run_id, kind, payload)
        await manager.broadcast(event.model_dump(mode="json"))

    def require_run(run_id: str) -> None:
        if run_id not in store.runs:
            raise HTTPException(status_code=404, detail="Run not found")

    # =========================================================================
    # ROUTES
    # =========================================================================

    @router.get("/agents")
    async def list_agents():
        return {"agents": [a.model_dump(mode="json") for a in store.agents.values()]}

    @router.post("/agents/{agent_id}/run")
    async def run_agent(agent_id: str):
        if agent_id not in store.agents:
            raise HTTPException(status_code=404, detail="Agent not found")
        run_id = store.create_run(agent_id)
        logger.info(f"▶️ Run {run_id} started for agent {agent_id}")
        await emit(run_id, EventKind.RUN_STARTED, {"reason": "manual"})
        await emit(run_id, EventKind.PLAN_GENERATED, {"steps": ["gather", "confirm", "execute"]})
        await emit(run_id, EventKind.REQUEST_INPUT, {"prompt": "Proceed with the plan?"})
        return {"run_id": run_id}

    @router.get("/runs")
    async def list_runs():
        return {"runs": [s.model_dump(mode="json") for s in store.summaries()]}

    @router.get("/runs/{run_id}")
    async def get_run(run_id: str):
        require_run(run_id)
        return {
            "events": [e.model_dump(mode="json") for e in store.runs[run_id]],
            "status": store.status(run_id),
        }

    @router.post("/runs/{run_id}/cancel")
    async def cancel_run(run_id: str):
        require_run(run_id)
        state = store.state(run_id)
        if state.is_terminal:
            raise HTTPException(status_code=409, detail=f"Run already {state.value}")
        logger.warning(f"🛑 Cancelled run {run_id}")
        await emit(run_id, EventKind.RUN_CANCELLED, {"message": "Run cancelled by user"})
        return {"status": "cancelled", "run_id": run_id}

    @router.post("/runs/{run_id}/input")
    async def submit_input(run_id: str, submission: InputSubmission):
        require_run(run_id)
        if store.state(run_id) is not RunState.AWAITING_INPUT:
            raise HTTPException(status_code=409, detail="Run is not awaiting input")
        await emit(run_id, EventKind.INPUT_RECEIVED, {"input": submission.input})
        await emit(run_id, EventKind.ACTION_EXECUTED, {"result": "ok"})
        await emit(run_id, EventKind.RUN_COMPLETED, {})
        return {"status": "accepted", "run_id": run_id}

    @router.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Push every new event to the client; inbound messages are ignored."""
        await manager.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            manager.disconnect(websocket)

    app = FastAPI(title="forgewatch mock backend")
    app.include_router(router)
    app.state.store = store
    app.state.manager = manager
    return app
