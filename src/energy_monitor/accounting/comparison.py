"""Monthly bill estimate compared against the previous month's bill."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from energy_monitor.tariff.rate_table import (
    REFERENCE_RATE_TABLE,
    TieredRateTable,
    compute_cost,
)
from energy_monitor.telemetry.values import UNAVAILABLE, Sentinel, parse_numeric

logger = logging.getLogger(__name__)

MaybeAmount = Union[float, Sentinel]


@dataclass(frozen=True)
class BillingSummary:
    """Month-to-date billing picture."""

    estimated_monthly_cost_rm: float
    estimated_monthly_savings_rm: float
    estimated_current_bill_rm: float
    previous_bill_rm: MaybeAmount = UNAVAILABLE
    total_savings_rm: MaybeAmount = UNAVAILABLE
    savings_pct: MaybeAmount = UNAVAILABLE

    @property
    def has_comparison(self) -> bool:
        return self.previous_bill_rm is not UNAVAILABLE


def compare(
    monthly_cost_rm: float,
    solar_savings_fraction: float,
    previous_bill_rm: Any = UNAVAILABLE,
) -> BillingSummary:
    """Apply solar savings to the tiered cost and compare with last month.

    ``previous_bill_rm`` may be a number, a numeric string, ``None`` or
    ``UNAVAILABLE``. Without a usable previous bill the savings fields stay
    ``UNAVAILABLE`` rather than being computed against a guessed default.
    """
    savings = monthly_cost_rm * solar_savings_fraction
    current_bill = monthly_cost_rm - savings

    previous = parse_numeric(previous_bill_rm)
    if not isinstance(previous, float):
        return BillingSummary(
            estimated_monthly_cost_rm=monthly_cost_rm,
            estimated_monthly_savings_rm=savings,
            estimated_current_bill_rm=current_bill,
        )

    total_savings = previous - current_bill
    # A zero (or credit) previous bill has no meaningful percentage
    savings_pct = total_savings / previous * 100 if previous > 0 else 0.0

    return BillingSummary(
        estimated_monthly_cost_rm=monthly_cost_rm,
        estimated_monthly_savings_rm=savings,
        estimated_current_bill_rm=current_bill,
        previous_bill_rm=previous,
        total_savings_rm=total_savings,
        savings_pct=savings_pct,
    )


class MonthlyComparisonEngine:
    """Tiered monthly cost followed by the previous-bill comparison."""

    def __init__(
        self,
        table: TieredRateTable = REFERENCE_RATE_TABLE,
        solar_savings_fraction: float = 0.0,
    ) -> None:
        self._table = table
        self._fraction = solar_savings_fraction

    @property
    def table(self) -> TieredRateTable:
        return self._table

    def summarise(self, total_kwh: float, previous_bill_rm: Any = UNAVAILABLE) -> BillingSummary:
        monthly_cost = compute_cost(total_kwh, self._table)
        summary = compare(monthly_cost, self._fraction, previous_bill_rm)
        logger.debug(
            "Billing: %.1fkWh -> cost=%.2f bill=%.2f savings=%r",
            total_kwh, summary.estimated_monthly_cost_rm,
            summary.estimated_current_bill_rm, summary.total_savings_rm,
        )
        return summary
