"""Tests for the monthly bill comparison."""

from __future__ import annotations

import math

import pytest

from energy_monitor.accounting.comparison import MonthlyComparisonEngine, compare
from energy_monitor.tariff.rate_table import RateTier, TieredRateTable
from energy_monitor.telemetry.values import UNAVAILABLE


class TestCompare:
    def test_savings_against_previous_bill(self) -> None:
        summary = compare(80.0, 0.0, 100.0)
        assert summary.estimated_current_bill_rm == pytest.approx(80.0)
        assert summary.total_savings_rm == pytest.approx(20.0)
        assert summary.savings_pct == pytest.approx(20.0)
        assert summary.has_comparison

    def test_solar_fraction_reduces_bill(self) -> None:
        summary = compare(100.0, 0.3, 100.0)
        assert summary.estimated_monthly_savings_rm == pytest.approx(30.0)
        assert summary.estimated_current_bill_rm == pytest.approx(70.0)
        assert summary.total_savings_rm == pytest.approx(30.0)
        assert summary.savings_pct == pytest.approx(30.0)

    def test_higher_bill_gives_negative_savings(self) -> None:
        summary = compare(120.0, 0.0, 100.0)
        assert summary.total_savings_rm == pytest.approx(-20.0)
        assert summary.savings_pct == pytest.approx(-20.0)

    @pytest.mark.parametrize("previous", [UNAVAILABLE, None, "", "n/a"])
    def test_no_usable_previous_bill(self, previous) -> None:
        summary = compare(60.3, 0.3, previous)
        assert summary.previous_bill_rm is UNAVAILABLE
        assert summary.total_savings_rm is UNAVAILABLE
        assert summary.savings_pct is UNAVAILABLE
        assert not summary.has_comparison
        assert summary.estimated_current_bill_rm == pytest.approx(60.3 * 0.7)

    def test_zero_previous_bill_has_zero_percentage(self) -> None:
        summary = compare(50.0, 0.0, 0)
        assert summary.savings_pct == 0.0
        assert summary.total_savings_rm == pytest.approx(-50.0)
        assert not math.isnan(summary.savings_pct)

    def test_numeric_string_previous_bill(self) -> None:
        summary = compare(100.0, 0.0, "120.5")
        assert summary.previous_bill_rm == pytest.approx(120.5)
        assert summary.total_savings_rm == pytest.approx(20.5)


class TestMonthlyComparisonEngine:
    def test_reference_scenario(self) -> None:
        engine = MonthlyComparisonEngine(solar_savings_fraction=0.0)
        summary = engine.summarise(250, 100)
        assert summary.estimated_monthly_cost_rm == pytest.approx(60.3)
        assert summary.total_savings_rm == pytest.approx(39.7)
        assert summary.savings_pct == pytest.approx(39.7)

    def test_custom_table(self) -> None:
        table = TieredRateTable([RateTier(None, 1.0)])
        engine = MonthlyComparisonEngine(table, 0.5)
        summary = engine.summarise(10)
        assert engine.table is table
        assert summary.estimated_monthly_cost_rm == pytest.approx(10.0)
        assert summary.estimated_current_bill_rm == pytest.approx(5.0)
        assert summary.savings_pct is UNAVAILABLE
