"""FastAPI application factory for the energy monitor API."""

from __future__ import annotations

from fastapi import FastAPI, Request

from energy_monitor import __version__
from energy_monitor.config.schema import AppConfig
from energy_monitor.pipeline.orchestrator import TelemetryPipeline


def create_app(config: AppConfig, pipeline: TelemetryPipeline) -> FastAPI:
    """Create the JSON/SSE API over a running pipeline."""
    app = FastAPI(
        title="Smart Energy Monitor",
        description="Derived energy metrics, tiered bill estimate and device control",
        version=__version__,
    )

    @app.middleware("http")
    async def disable_browser_cache(request: Request, call_next):
        response = await call_next(request)
        if request.method in {"GET", "HEAD"}:
            # Views change with every snapshot; never serve a cached one
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response

    app.state.config = config
    app.state.pipeline = pipeline

    from energy_monitor.dashboard.routes.api import router as api_router
    from energy_monitor.dashboard.routes.sse import router as sse_router

    app.include_router(api_router, prefix="/api")
    app.include_router(sse_router, prefix="/api")

    return app
