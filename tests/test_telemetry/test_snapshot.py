"""Tests for value parsing and snapshot construction."""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone

import pytest

from energy_monitor.control.state import ControlMode, SwitchState
from energy_monitor.telemetry.snapshot import Level, parse_snapshot
from energy_monitor.telemetry.values import (
    UNAVAILABLE,
    MalformedNumeric,
    display_value,
    number_or_zero,
    parse_numeric,
)


class TestParseNumeric:
    @pytest.mark.parametrize(
        "raw, expected",
        [(7, 7.0), (0.25, 0.25), ("12.5", 12.5), (" 3 ", 3.0), ("-1", -1.0)],
    )
    def test_numbers(self, raw, expected: float) -> None:
        assert parse_numeric(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", UNAVAILABLE])
    def test_unavailable(self, raw) -> None:
        assert parse_numeric(raw) is UNAVAILABLE

    @pytest.mark.parametrize("raw", ["abc", "Loading...", math.nan, math.inf, "nan", True, [1], 10**400])
    def test_malformed(self, raw) -> None:
        assert isinstance(parse_numeric(raw), MalformedNumeric)

    def test_malformed_keeps_text(self) -> None:
        assert parse_numeric(" N/A ") == MalformedNumeric("N/A")

    def test_integer_beyond_float_range(self) -> None:
        parsed = parse_numeric(10**400)
        assert isinstance(parsed, MalformedNumeric)
        assert parsed.raw == str(10**400)

    def test_unavailable_is_not_zero(self) -> None:
        assert UNAVAILABLE != 0
        assert not UNAVAILABLE
        assert number_or_zero(UNAVAILABLE) == 0.0
        assert number_or_zero(MalformedNumeric("x")) == 0.0
        assert number_or_zero(4.5) == 4.5

    def test_display_value(self) -> None:
        assert display_value(UNAVAILABLE) is None
        assert display_value(MalformedNumeric("oops")) == "oops"
        assert display_value(Level.HIGH) == "HIGH"
        assert display_value(1.5) == 1.5


class TestParseSnapshot:
    def test_full_snapshot(self, sample_data) -> None:
        snap = parse_snapshot(sample_data)
        assert snap.current_amps == 0.25
        assert snap.brightness == 80.0
        assert snap.ldr == 12.0
        assert snap.fan_speed_pct == 55.0
        assert snap.temperature_c == 31.5
        assert snap.cumulative_energy_kwh == 250.0
        assert snap.pir is Level.LOW
        assert snap.rain is Level.HIGH
        assert snap.control.mode is ControlMode.AUTONOMOUS
        assert snap.control.fan_manual is SwitchState.OFF
        assert snap.control.light_manual is SwitchState.ON
        assert snap.malformed_fields == ()

    def test_missing_fields_are_unavailable(self) -> None:
        snap = parse_snapshot({"current": 0.1})
        assert snap.temperature_c is UNAVAILABLE
        assert snap.pir is UNAVAILABLE
        assert snap.control.mode is UNAVAILABLE
        assert snap.control.fan_manual is UNAVAILABLE

    def test_oversized_json_literal(self) -> None:
        snap = parse_snapshot(json.loads('{"current": 1' + "0" * 400 + ', "temp": 21}'))
        assert isinstance(snap.current_amps, MalformedNumeric)
        assert snap.temperature_c == 21.0
        assert snap.malformed_fields == ("current",)

    def test_malformed_fields_recorded(self) -> None:
        snap = parse_snapshot({"current": "abc", "temp": "25"})
        assert snap.current_amps == MalformedNumeric("abc")
        assert snap.temperature_c == 25.0
        assert snap.malformed_fields == ("current",)

    @pytest.mark.parametrize("data", [None, [], "garbage", 42])
    def test_non_mapping_is_empty(self, data) -> None:
        snap = parse_snapshot(data)
        assert snap.current_amps is UNAVAILABLE
        assert snap.control.mode is UNAVAILABLE

    def test_mode_parsing(self) -> None:
        assert parse_snapshot({"mode": "AI"}).control.mode is ControlMode.AUTONOMOUS
        assert parse_snapshot({"mode": "Manual"}).control.mode is ControlMode.MANUAL
        assert parse_snapshot({"mode": "auto"}).control.mode is UNAVAILABLE

    def test_switch_parsing(self) -> None:
        snap = parse_snapshot({"fan_manual": "on", "light_manual": "maybe"})
        assert snap.control.fan_manual is SwitchState.ON
        assert snap.control.light_manual is UNAVAILABLE

    def test_received_at(self) -> None:
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert parse_snapshot({}, received_at=when).received_at == when

    def test_equality_ignores_receive_time(self, sample_data) -> None:
        assert parse_snapshot(sample_data) == parse_snapshot(dict(sample_data))

    def test_snapshot_is_immutable(self, sample_data) -> None:
        snap = parse_snapshot(sample_data)
        with pytest.raises(AttributeError):
            snap.current_amps = 1.0  # type: ignore[misc]
