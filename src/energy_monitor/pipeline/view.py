"""The immutable view published to the presentation layer."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any

from energy_monitor.accounting.comparison import BillingSummary
from energy_monitor.control.state import ControlState
from energy_monitor.metrics.calculator import DerivedMetrics
from energy_monitor.status.classifier import Band, Classification
from energy_monitor.tariff.rate_table import TierPosition
from energy_monitor.telemetry.values import display_value


class TransportStatus(str, Enum):
    CONNECTING = "connecting"
    LIVE = "live"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ReadingStatus:
    """One gauge: the value shown, its alert band, and how full to draw it."""

    value: Any
    classification: Classification
    gauge_pct: float

    @property
    def band(self) -> Band:
        return self.classification.band

    @property
    def color(self) -> str:
        return self.classification.color


@dataclass(frozen=True)
class DerivedView:
    """Everything the dashboard needs for one snapshot.

    Built in one piece and swapped in whole; a view with ``status`` other than
    ``LIVE`` carries no metrics or billing so nothing stale is shown.
    """

    sequence: int
    status: TransportStatus
    control: ControlState
    metrics: DerivedMetrics | None = None
    billing: BillingSummary | None = None
    tier: TierPosition | None = None
    readings: Mapping[str, ReadingStatus] = field(default_factory=dict, hash=False)
    status_reason: str = ""
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        # Listeners share the view; readings must not be editable after publish
        object.__setattr__(self, "readings", MappingProxyType(dict(self.readings)))

    @property
    def is_live(self) -> bool:
        return self.status is TransportStatus.LIVE

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (amounts rounded for display)."""
        data: dict[str, Any] = {
            "sequence": self.sequence,
            "status": self.status.value,
            "status_reason": self.status_reason or None,
            "generated_at": self.generated_at.isoformat(),
            "control": self.control.to_dict(),
            "metrics": None,
            "billing": None,
            "tier": None,
            "readings": {
                name: {
                    "value": display_value(reading.value),
                    "band": reading.band.value,
                    "color": reading.color,
                    "gauge_pct": round(reading.gauge_pct, 1),
                }
                for name, reading in self.readings.items()
            },
        }
        if self.metrics is not None:
            data["metrics"] = {
                "power_watts": round(self.metrics.power_watts, 3),
                "utilization_pct": round(self.metrics.utilization_pct, 1),
                "hourly_cost_rm": round(self.metrics.hourly_cost_rm, 6),
                "hourly_savings_rm": round(self.metrics.hourly_savings_rm, 6),
            }
        if self.billing is not None:
            b = self.billing
            data["billing"] = {
                "estimated_monthly_cost_rm": _money(b.estimated_monthly_cost_rm),
                "estimated_monthly_savings_rm": _money(b.estimated_monthly_savings_rm),
                "estimated_current_bill_rm": _money(b.estimated_current_bill_rm),
                "previous_bill_rm": _money(b.previous_bill_rm),
                "total_savings_rm": _money(b.total_savings_rm),
                "savings_pct": _money(b.savings_pct),
            }
        if self.tier is not None:
            data["tier"] = {
                "index": self.tier.tier_index,
                "marginal_rate_per_kwh": self.tier.marginal_rate_per_kwh,
                "kwh_to_next_tier": _money(self.tier.kwh_to_next_tier),
            }
        return data


def _money(value: Any) -> float | None:
    # Sentinels serialise as null, never as 0
    if isinstance(value, float) and math.isfinite(value):
        return round(value, 2)
    return None
