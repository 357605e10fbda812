"""Telemetry pipeline: snapshot in, one complete DerivedView out.

Per snapshot:
  parse → control reconcile → metrics → tiered billing → comparison →
  classification → publish

Every view is rebuilt from the current snapshot plus the retained previous
bill; nothing is carried over from earlier snapshots.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from energy_monitor.accounting.comparison import BillingSummary, MonthlyComparisonEngine
from energy_monitor.config.schema import AppConfig
from energy_monitor.control.reconciler import ControlStateReconciler
from energy_monitor.control.state import ControlState
from energy_monitor.logging.context import snapshot_context
from energy_monitor.metrics.calculator import DerivedMetrics, MetricsCalculator
from energy_monitor.pipeline.view import DerivedView, ReadingStatus, TransportStatus
from energy_monitor.status.classifier import StatusClassifier, StatusContext, gauge_percent
from energy_monitor.tariff.rate_table import TieredRateTable, tier_position
from energy_monitor.telemetry.snapshot import TelemetrySnapshot, parse_snapshot
from energy_monitor.telemetry.values import (
    UNAVAILABLE,
    MalformedNumeric,
    ParsedNumber,
    number_or_zero,
    parse_numeric,
)
from energy_monitor.transport.base import (
    PreviousBillReceived,
    SnapshotReceived,
    TelemetryTransport,
    TransportEvent,
    TransportUnavailable,
)

logger = logging.getLogger(__name__)

ViewListener = Callable[[DerivedView], None]

# reading name -> (snapshot attribute, classification context)
SENSOR_READINGS: dict[str, tuple[str, StatusContext]] = {
    "ldr": ("ldr", StatusContext.GENERAL),
    "brightness": ("brightness", StatusContext.GENERAL),
    "temp": ("temperature_c", StatusContext.GENERAL),
    "fan_speed": ("fan_speed_pct", StatusContext.GENERAL),
    "pir": ("pir", StatusContext.SECONDARY_BINARY),
    "rain": ("rain", StatusContext.SECONDARY_BINARY),
}


class TelemetryPipeline:
    """Orchestrates derivation and publishes views to listeners.

    The transport is injected; the pipeline owns the subscription task and
    cancelling it (``stop()``) releases the subscription.
    """

    def __init__(
        self,
        config: AppConfig,
        transport: TelemetryTransport,
        reconciler: ControlStateReconciler | None = None,
        table: TieredRateTable | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        # Raises InvalidRateTable on a bad tariff; fatal by design of startup
        self._table = table or TieredRateTable.from_config(config.tariff)
        self._calculator = MetricsCalculator(config.electrical, config.pricing)
        self._billing = MonthlyComparisonEngine(self._table, config.pricing.solar_savings_fraction)
        self._classifier = StatusClassifier(config.classifier)
        self._reconciler = reconciler or ControlStateReconciler(transport.write_field)

        self._previous_bill: ParsedNumber = UNAVAILABLE
        self._status = TransportStatus.CONNECTING
        self._view: DerivedView | None = None
        self._sequence = 0
        self._listeners: list[ViewListener] = []
        self._task: asyncio.Task | None = None

    # ── Accessors ────────────────────────────────────────────

    @property
    def reconciler(self) -> ControlStateReconciler:
        return self._reconciler

    @property
    def table(self) -> TieredRateTable:
        return self._table

    @property
    def latest_view(self) -> DerivedView | None:
        return self._view

    @property
    def status(self) -> TransportStatus:
        return self._status

    @property
    def previous_bill_rm(self) -> ParsedNumber:
        return self._previous_bill

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Listeners ────────────────────────────────────────────

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Register a view callback. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ── Event handling ───────────────────────────────────────

    def handle_event(self, event: TransportEvent) -> DerivedView | None:
        if isinstance(event, SnapshotReceived):
            return self.process_snapshot(event.data, event.received_at)
        if isinstance(event, PreviousBillReceived):
            self.set_previous_bill(event.value)
            return None
        if isinstance(event, TransportUnavailable):
            return self.mark_unavailable(event.reason)
        logger.warning("Ignoring unknown transport event: %r", event)
        return None

    def set_previous_bill(self, raw: Any) -> None:
        """Retain the reference bill; applies from the next snapshot on."""
        parsed = parse_numeric(raw)
        if isinstance(parsed, MalformedNumeric):
            logger.warning("Malformed previous bill %r; treating as unavailable", parsed.raw)
            parsed = UNAVAILABLE
        self._previous_bill = parsed
        logger.info("Previous bill: %r", parsed)

    def process_snapshot(self, data: Any, received_at: datetime | None = None) -> DerivedView:
        snapshot = parse_snapshot(data, received_at)
        self._reconciler.apply_snapshot(snapshot)
        self._status = TransportStatus.LIVE
        with snapshot_context(self._sequence + 1):
            view = self.build_view(snapshot)
        self._publish(view)
        return view

    def build_view(self, snapshot: TelemetrySnapshot) -> DerivedView:
        """Pure derivation of a live view from one snapshot."""
        metrics = self._calculator.derive(snapshot)
        total_kwh = number_or_zero(snapshot.cumulative_energy_kwh)
        billing = self._billing.summarise(total_kwh, self._previous_bill)

        return DerivedView(
            sequence=self._sequence + 1,
            status=TransportStatus.LIVE,
            control=snapshot.control,
            metrics=metrics,
            billing=billing,
            tier=tier_position(total_kwh, self._table),
            readings=self._classify(snapshot, metrics, billing),
        )

    def mark_unavailable(self, reason: str) -> DerivedView:
        """Publish a view with no derived data and forget the mirrored control state."""
        logger.warning("Transport unavailable: %s", reason)
        self._status = TransportStatus.UNAVAILABLE
        self._reconciler.apply_state(ControlState())
        view = DerivedView(
            sequence=self._sequence + 1,
            status=TransportStatus.UNAVAILABLE,
            control=ControlState(),
            status_reason=reason,
        )
        self._publish(view)
        return view

    def _classify(
        self,
        snapshot: TelemetrySnapshot,
        metrics: DerivedMetrics,
        billing: BillingSummary,
    ) -> dict[str, ReadingStatus]:
        readings: dict[str, ReadingStatus] = {}

        for name, (attr, context) in SENSOR_READINGS.items():
            readings[name] = self._reading(getattr(snapshot, attr), context)

        readings["utilization_pct"] = self._reading(metrics.utilization_pct, StatusContext.ENERGY)
        readings["savings_pct"] = self._reading(billing.savings_pct, StatusContext.ENERGY)

        # Manual switch positions: display-only history while autonomous
        readings["fan_manual"] = self._reading(snapshot.control.fan_manual, StatusContext.BINARY)
        readings["light_manual"] = self._reading(snapshot.control.light_manual, StatusContext.BINARY)
        return readings

    def _reading(self, value: Any, context: StatusContext) -> ReadingStatus:
        return ReadingStatus(
            value=value,
            classification=self._classifier.classify(value, context),
            gauge_pct=gauge_percent(value),
        )

    def _publish(self, view: DerivedView) -> None:
        self._sequence = view.sequence
        self._view = view
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("View listener failed")

    # ── Subscription lifecycle ───────────────────────────────

    async def run(self) -> None:
        """Consume transport events until the subscription ends or is cancelled."""
        self._status = TransportStatus.CONNECTING
        try:
            async for event in self._transport.events():
                try:
                    self.handle_event(event)
                except Exception:
                    # One bad event never ends a healthy subscription
                    logger.exception("Failed to process transport event %r", event)
        except asyncio.CancelledError:
            logger.info("Telemetry subscription cancelled")
            raise
        except Exception as e:
            logger.exception("Telemetry subscription error")
            self.mark_unavailable(str(e) or type(e).__name__)
            return

        if self._status is not TransportStatus.UNAVAILABLE:
            self.mark_unavailable("subscription ended")

    def start(self) -> asyncio.Task:
        """Subscribe in a background task. Calling again resubscribes."""
        if self.is_running:
            return self._task  # type: ignore[return-value]
        self._task = asyncio.get_running_loop().create_task(self.run(), name="telemetry-pipeline")
        return self._task

    async def stop(self) -> None:
        """Cancel the subscription and any in-flight control writes."""
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._reconciler.cancel_pending()
