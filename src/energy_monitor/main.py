"""Energy monitor entry point and lifecycle orchestrator.

Startup sequence:
  config → logging → rate table → transport → reconciler → pipeline →
  MQTT view publisher → API server
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from energy_monitor import __version__
from energy_monitor.config.manager import ConfigManager
from energy_monitor.config.schema import AppConfig
from energy_monitor.control.reconciler import ControlStateReconciler
from energy_monitor.logging.context import bind_context, clear_context
from energy_monitor.logging.structured import setup_logging
from energy_monitor.pipeline.orchestrator import TelemetryPipeline
from energy_monitor.pipeline.view import DerivedView
from energy_monitor.tariff.rate_table import TieredRateTable
from energy_monitor.transport.base import TelemetryTransport

logger = logging.getLogger(__name__)


class Application:
    """Main application lifecycle manager.

    Wires all modules together and manages startup/shutdown ordering.
    """

    def __init__(self, config: AppConfig, transport: TelemetryTransport | None = None) -> None:
        self.config = config
        self._transport = transport
        self._running = False
        self._stop_event = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

        self.pipeline: TelemetryPipeline | None = None
        self._publisher = None
        self._server = None

    @property
    def is_running(self) -> bool:
        return self._running

    def build(self) -> TelemetryPipeline:
        """Construct transport, reconciler and pipeline without starting anything.

        Raises InvalidRateTable if the configured tariff is unusable.
        """
        table = TieredRateTable.from_config(self.config.tariff)
        logger.info("Rate table loaded: %r", table)

        if self._transport is None:
            self._transport = self._create_transport()

        reconciler = ControlStateReconciler(self._transport.write_field)
        self.pipeline = TelemetryPipeline(
            self.config, self._transport, reconciler=reconciler, table=table,
        )
        return self.pipeline

    def _create_transport(self) -> TelemetryTransport:
        if self.config.transport.type == "memory":
            from energy_monitor.transport.memory import InMemoryTransport

            logger.info("Using in-memory transport")
            return InMemoryTransport()

        from energy_monitor.mqtt.transport import MQTTTransport

        return MQTTTransport(self.config.transport.mqtt)

    async def start(self) -> None:
        """Start all components in dependency order and wait for stop()."""
        logger.info("Starting energy monitor v%s", __version__)
        bind_context(service="energy_monitor")
        self._running = True
        self._stop_event.clear()

        pipeline = self.pipeline or self.build()

        # ── MQTT view publisher ──────────────────────────────
        publish = getattr(self._transport, "publish", None)
        if self.config.transport.publish_derived_view and publish is not None:
            from energy_monitor.mqtt.publisher import ViewPublisher

            self._publisher = ViewPublisher(publish, self.config.transport.mqtt.topic_prefix)
            pipeline.add_listener(self._schedule_publish)
            await self._publisher.publish_status(online=True)

        # ── Telemetry subscription ───────────────────────────
        pipeline.start()

        # ── API server ───────────────────────────────────────
        if self.config.dashboard.enabled:
            self._spawn(self._serve_dashboard(), "dashboard")

        logger.info("Energy monitor started")
        await self._stop_event.wait()

    async def stop(self) -> None:
        """Stop components in reverse order."""
        if not self._running:
            return
        logger.info("Stopping energy monitor")
        self._running = False

        if self._server is not None:
            self._server.should_exit = True

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self.pipeline is not None:
            await self.pipeline.stop()
        if self._publisher is not None:
            with contextlib.suppress(Exception):
                await self._publisher.publish_status(online=False)
        if self._transport is not None:
            await self._transport.close()

        clear_context()
        self._stop_event.set()
        logger.info("Energy monitor stopped")

    def _schedule_publish(self, view: DerivedView) -> None:
        if self._publisher is not None and self._running:
            self._spawn(self._publisher.publish_view(view), f"publish-view-{view.sequence}")

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task %s failed: %s", task.get_name(), task.exception())

    async def _serve_dashboard(self) -> None:
        import uvicorn

        from energy_monitor.dashboard.app import create_app

        app = create_app(self.config, self.pipeline)
        server_config = uvicorn.Config(
            app,
            host=self.config.dashboard.host,
            port=self.config.dashboard.port,
            log_config=None,
        )
        self._server = uvicorn.Server(server_config)
        logger.info("API listening on %s:%d", self.config.dashboard.host, self.config.dashboard.port)
        await self._server.serve()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Smart energy monitor service")
    parser.add_argument("--config", default="config.yaml", help="User override YAML")
    parser.add_argument("--defaults", default="config.defaults.yaml", help="Defaults YAML")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the application."""
    args = parse_args(argv)
    config_manager = ConfigManager(Path(args.defaults), Path(args.config))
    config = config_manager.load()

    setup_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.file,
    )

    app = Application(config)
    # Fail fast on a bad tariff before anything connects
    app.build()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _request_stop() -> None:
        if not loop.is_closed():
            loop.call_soon_threadsafe(lambda: asyncio.ensure_future(app.stop()))

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)
    else:
        signal.signal(signal.SIGINT, lambda *_: _request_stop())

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
    finally:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
