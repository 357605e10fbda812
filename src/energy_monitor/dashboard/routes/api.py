"""REST API endpoints returning JSON data."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from energy_monitor.control.reconciler import ControlError
from energy_monitor.control.state import ControlMode, SwitchState

router = APIRouter()
logger = logging.getLogger(__name__)


# ── Request models ───────────────────────────────────

class ModeRequest(BaseModel):
    mode: ControlMode | None = None  # None = toggle


class SwitchRequest(BaseModel):
    state: SwitchState | None = None  # None = toggle


# ── View ─────────────────────────────────────────────

@router.get("/view")
async def get_view(request: Request) -> dict:
    """Latest derived view."""
    view = request.app.state.pipeline.latest_view
    if view is None:
        raise HTTPException(status_code=503, detail="No telemetry received yet")
    return view.to_dict()


@router.get("/health")
async def health(request: Request) -> dict:
    pipeline = request.app.state.pipeline
    view = pipeline.latest_view
    return {
        "transport": pipeline.status.value,
        "subscribed": pipeline.is_running,
        "sequence": view.sequence if view else 0,
        "pending_writes": pipeline.reconciler.pending_count,
    }


# ── Control ──────────────────────────────────────────

@router.get("/control")
async def get_control(request: Request) -> dict:
    """Authoritative control state as last reported by the store."""
    return request.app.state.pipeline.reconciler.state.to_dict()


@router.post("/control/mode")
async def set_mode(request: Request, body: ModeRequest | None = None) -> JSONResponse:
    reconciler = request.app.state.pipeline.reconciler
    mode = body.mode if body else None
    try:
        if mode is None:
            task = reconciler.toggle_mode()
        else:
            task = reconciler.request_mode(mode)
    except ControlError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _accepted("mode", task.get_name(), reconciler.last_intent.value)


@router.post("/control/fan")
async def set_fan(request: Request, body: SwitchRequest | None = None) -> JSONResponse:
    reconciler = request.app.state.pipeline.reconciler
    state = body.state if body else None
    try:
        task = reconciler.toggle_fan() if state is None else reconciler.request_fan(state)
    except ControlError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _accepted("fan_manual", task.get_name(), reconciler.last_intent.value)


@router.post("/control/light")
async def set_light(request: Request, body: SwitchRequest | None = None) -> JSONResponse:
    reconciler = request.app.state.pipeline.reconciler
    state = body.state if body else None
    try:
        task = reconciler.toggle_light() if state is None else reconciler.request_light(state)
    except ControlError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _accepted("light_manual", task.get_name(), reconciler.last_intent.value)


def _accepted(field_name: str, task_name: str, value: str) -> JSONResponse:
    # The new state is only known once the store echoes it in a snapshot
    logger.debug("Accepted %s=%s (%s)", field_name, value, task_name)
    return JSONResponse(
        status_code=202,
        content={"field": field_name, "requested": value, "confirmed": False},
    )
