"""Progressive (tiered) electricity tariff.

Consumption is billed bracket by bracket: the first ``capacity_kwh`` units of
the billing month at the first tier's rate, the next block at the second
tier's rate, and so on. A rate change only affects the marginal units, so the
cost curve is continuous and non-decreasing.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from energy_monitor.config.schema import TariffConfig
from energy_monitor.telemetry.values import UNAVAILABLE, Sentinel

logger = logging.getLogger(__name__)


class InvalidRateTable(ValueError):
    """The tier definitions cannot produce a correct bill."""


@dataclass(frozen=True)
class RateTier:
    capacity_kwh: float | None  # None = unbounded
    rate_per_kwh: float  # RM/kWh

    @property
    def is_unbounded(self) -> bool:
        return self.capacity_kwh is None


@dataclass(frozen=True)
class TierCharge:
    """Consumption allocated to one tier."""

    tier_index: int
    kwh: float
    rate_per_kwh: float

    @property
    def cost(self) -> float:
        return self.kwh * self.rate_per_kwh


@dataclass(frozen=True)
class TierPosition:
    """Where a cumulative consumption figure sits in the table."""

    tier_index: int
    marginal_rate_per_kwh: float
    kwh_to_next_tier: float | Sentinel  # UNAVAILABLE in the open-ended tier


class TieredRateTable:
    """Immutable, validated sequence of rate tiers."""

    def __init__(self, tiers: Iterable[RateTier]) -> None:
        self._tiers = tuple(tiers)
        self._validate()

    @classmethod
    def from_config(cls, config: TariffConfig) -> "TieredRateTable":
        return cls(RateTier(t.capacity_kwh, t.rate_per_kwh) for t in config.tiers)

    @property
    def tiers(self) -> tuple[RateTier, ...]:
        return self._tiers

    @property
    def boundaries_kwh(self) -> tuple[float, ...]:
        """Cumulative upper bound of every bounded tier."""
        bounds: list[float] = []
        total = 0.0
        for tier in self._tiers:
            if tier.capacity_kwh is None:
                break
            total += tier.capacity_kwh
            bounds.append(total)
        return tuple(bounds)

    def __iter__(self) -> Iterator[RateTier]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def __repr__(self) -> str:
        parts = ", ".join(
            f"{'∞' if t.capacity_kwh is None else t.capacity_kwh:g}@{t.rate_per_kwh:g}"
            for t in self._tiers
        )
        return f"TieredRateTable({parts})"

    def _validate(self) -> None:
        if not self._tiers:
            raise InvalidRateTable("rate table has no tiers")

        last = len(self._tiers) - 1
        for i, tier in enumerate(self._tiers):
            if not math.isfinite(tier.rate_per_kwh) or tier.rate_per_kwh < 0:
                raise InvalidRateTable(f"tier {i}: rate {tier.rate_per_kwh!r} must be a finite value >= 0")
            if tier.capacity_kwh is None:
                if i != last:
                    raise InvalidRateTable(f"tier {i}: only the last tier may be unbounded")
                continue
            if not math.isfinite(tier.capacity_kwh) or tier.capacity_kwh < 0:
                raise InvalidRateTable(f"tier {i}: capacity {tier.capacity_kwh!r} must be a finite value >= 0")
            if tier.capacity_kwh == 0 and i != last:
                raise InvalidRateTable(f"tier {i}: capacity must be > 0 for a non-last tier")


REFERENCE_RATE_TABLE = TieredRateTable([
    RateTier(200, 0.218),
    RateTier(100, 0.334),
    RateTier(300, 0.516),
    RateTier(300, 0.546),
    RateTier(None, 0.571),
])


def allocate(total_kwh: float, table: TieredRateTable) -> list[TierCharge]:
    """Split consumption across tiers in table order.

    Negative consumption is treated as 0. With no unbounded tier, anything
    past the last bracket is billed at the last tier's rate.
    """
    remaining = max(0.0, total_kwh)
    charges: list[TierCharge] = []

    for i, tier in enumerate(table):
        if remaining <= 0:
            break
        if tier.capacity_kwh is None:
            units = remaining
        else:
            units = min(remaining, tier.capacity_kwh)
        if units > 0:
            charges.append(TierCharge(i, units, tier.rate_per_kwh))
        remaining -= units

    if remaining > 0:
        last = len(table) - 1
        overflow_rate = table.tiers[last].rate_per_kwh
        if charges and charges[-1].tier_index == last:
            prev = charges.pop()
            charges.append(TierCharge(last, prev.kwh + remaining, overflow_rate))
        else:
            charges.append(TierCharge(last, remaining, overflow_rate))

    return charges


def compute_cost(total_kwh: float, table: TieredRateTable = REFERENCE_RATE_TABLE) -> float:
    """Monthly energy cost in RM for cumulative consumption ``total_kwh``."""
    return sum(charge.cost for charge in allocate(total_kwh, table))


def tier_position(total_kwh: float, table: TieredRateTable = REFERENCE_RATE_TABLE) -> TierPosition:
    """Tier currently being billed and headroom before the next rate applies."""
    consumed = max(0.0, total_kwh)
    upper = 0.0
    for i, tier in enumerate(table):
        if tier.capacity_kwh is None:
            return TierPosition(i, tier.rate_per_kwh, UNAVAILABLE)
        upper += tier.capacity_kwh
        # Exactly on a boundary still belongs to the lower tier
        if consumed <= upper and tier.capacity_kwh > 0:
            return TierPosition(i, tier.rate_per_kwh, upper - consumed)

    last = len(table) - 1
    return TierPosition(last, table.tiers[last].rate_per_kwh, UNAVAILABLE)
