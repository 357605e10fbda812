"""Instantaneous metrics derived from a single snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from energy_monitor.config.schema import ElectricalConfig, PricingConfig
from energy_monitor.telemetry.snapshot import TelemetrySnapshot
from energy_monitor.telemetry.values import number_or_zero

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DerivedMetrics:
    power_watts: float
    utilization_pct: float  # 0-100
    hourly_cost_rm: float
    hourly_savings_rm: float


def derive_metrics(
    snapshot: TelemetrySnapshot,
    electrical: ElectricalConfig,
    pricing: PricingConfig,
) -> DerivedMetrics:
    """Compute power, utilization and hourly cost/savings.

    Uses the flat per-Wh rate from ``pricing``, not the tiered monthly
    table: running cost for the next hour is priced at a single rate while
    the month-to-date bill is progressive.

    Unavailable or malformed current readings count as 0 A.
    """
    amps = number_or_zero(snapshot.current_amps)

    power_watts = amps * electrical.system_voltage_v
    utilization = amps / electrical.max_rated_amps * 100
    utilization_pct = min(100.0, max(0.0, utilization))

    hourly_cost = power_watts * pricing.flat_rate_per_wh
    hourly_savings = hourly_cost * pricing.solar_savings_fraction

    return DerivedMetrics(
        power_watts=power_watts,
        utilization_pct=utilization_pct,
        hourly_cost_rm=hourly_cost,
        hourly_savings_rm=hourly_savings,
    )


class MetricsCalculator:
    """Binds ``derive_metrics`` to the configured electrical/pricing constants."""

    def __init__(self, electrical: ElectricalConfig, pricing: PricingConfig) -> None:
        self._electrical = electrical
        self._pricing = pricing

    def derive(self, snapshot: TelemetrySnapshot) -> DerivedMetrics:
        metrics = derive_metrics(snapshot, self._electrical, self._pricing)
        logger.debug(
            "Metrics: power=%.3fW utilization=%.1f%% hourly_cost=%.6f",
            metrics.power_watts, metrics.utilization_pct, metrics.hourly_cost_rm,
        )
        return metrics
