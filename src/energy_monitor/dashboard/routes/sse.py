"""Server-Sent Events for live dashboard updates."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Request
from starlette.responses import StreamingResponse

from energy_monitor.pipeline.view import DerivedView

router = APIRouter()
logger = logging.getLogger(__name__)


def format_event(view: DerivedView) -> str:
    return f"id: {view.sequence}\nevent: view\ndata: {json.dumps(view.to_dict())}\n\n"


@router.get("/events")
async def event_stream(request: Request) -> StreamingResponse:
    """SSE endpoint pushing every new DerivedView."""
    pipeline = request.app.state.pipeline
    interval = request.app.state.config.dashboard.sse_interval_seconds

    queue: asyncio.Queue[DerivedView] = asyncio.Queue(maxsize=16)

    def _enqueue(view: DerivedView) -> None:
        if queue.full():
            # Slow client: drop the oldest, views are complete replacements
            queue.get_nowait()
        queue.put_nowait(view)

    async def generate():
        unsubscribe = pipeline.add_listener(_enqueue)
        try:
            current = pipeline.latest_view
            if current is not None:
                yield format_event(current)
            while True:
                if await request.is_disconnected():
                    break
                try:
                    view = await asyncio.wait_for(queue.get(), timeout=interval)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield format_event(view)
        finally:
            unsubscribe()
            logger.debug("SSE client disconnected")

    return StreamingResponse(generate(), media_type="text/event-stream")
