"""Telemetry snapshot model and wire-format parsing."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from energy_monitor.control.state import ControlMode, ControlState, SwitchState
from energy_monitor.telemetry.values import (
    UNAVAILABLE,
    MalformedNumeric,
    ParsedNumber,
    Sentinel,
    parse_numeric,
)

logger = logging.getLogger(__name__)


class Level(str, Enum):
    """Two-level digital sensor reading (PIR, rain)."""

    LOW = "LOW"
    HIGH = "HIGH"

    @classmethod
    def parse(cls, value: object) -> "Level | Sentinel":
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().upper() in ("LOW", "HIGH"):
            return cls(value.strip().upper())
        return UNAVAILABLE


LevelValue = Union[Level, Sentinel]

# wire key -> snapshot attribute
NUMERIC_FIELDS: dict[str, str] = {
    "current": "current_amps",
    "brightness": "brightness",
    "ldr": "ldr",
    "fan_speed": "fan_speed_pct",
    "temp": "temperature_c",
    "overall_current": "cumulative_energy_kwh",
}
LEVEL_FIELDS: dict[str, str] = {
    "pir": "pir",
    "rain": "rain",
}


@dataclass(frozen=True)
class TelemetrySnapshot:
    """One complete telemetry update. Transient; never stored."""

    current_amps: ParsedNumber = UNAVAILABLE
    brightness: ParsedNumber = UNAVAILABLE
    ldr: ParsedNumber = UNAVAILABLE
    fan_speed_pct: ParsedNumber = UNAVAILABLE
    temperature_c: ParsedNumber = UNAVAILABLE
    cumulative_energy_kwh: ParsedNumber = UNAVAILABLE
    pir: LevelValue = UNAVAILABLE
    rain: LevelValue = UNAVAILABLE
    control: ControlState = field(default_factory=ControlState)
    malformed_fields: tuple[str, ...] = ()
    received_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False,
    )


def parse_snapshot(
    data: Mapping[str, Any] | None,
    received_at: datetime | None = None,
) -> TelemetrySnapshot:
    """Build a snapshot from the raw store object.

    Never raises: absent fields become ``UNAVAILABLE``, unreadable numbers
    become ``MalformedNumeric`` and are logged, anything that is not a mapping
    is treated as an empty snapshot.
    """
    if data is None:
        data = {}
    elif not isinstance(data, Mapping):
        logger.warning("Snapshot is not an object (%s); treating as empty", type(data).__name__)
        data = {}

    values: dict[str, Any] = {}
    malformed: list[str] = []

    for key, attr in NUMERIC_FIELDS.items():
        parsed = parse_numeric(data.get(key))
        if isinstance(parsed, MalformedNumeric):
            logger.warning("Malformed numeric telemetry: %s=%r (using 0)", key, parsed.raw)
            malformed.append(key)
        values[attr] = parsed

    for key, attr in LEVEL_FIELDS.items():
        values[attr] = _parse_enum(key, data.get(key), Level.parse)

    values["control"] = ControlState(
        mode=_parse_enum("mode", data.get("mode"), ControlMode.parse),
        fan_manual=_parse_enum("fan_manual", data.get("fan_manual"), SwitchState.parse),
        light_manual=_parse_enum("light_manual", data.get("light_manual"), SwitchState.parse),
    )

    return TelemetrySnapshot(
        **values,
        malformed_fields=tuple(malformed),
        received_at=received_at or datetime.now(timezone.utc),
    )


def _parse_enum(key: str, raw: Any, parser: Any) -> Any:
    parsed = parser(raw)
    if parsed is UNAVAILABLE and raw is not None:
        logger.warning("Unrecognised value for %s: %r", key, raw)
    return parsed
