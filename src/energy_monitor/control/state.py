"""Control state model: operating mode and manual actuator switches."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from energy_monitor.telemetry.values import UNAVAILABLE, Sentinel


class ControlMode(str, Enum):
    """Who drives the fan and light. Values are the wire strings."""

    AUTONOMOUS = "ai"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: object) -> "ControlMode | Sentinel":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalised = value.strip().lower()
            for member in cls:
                if member.value == normalised:
                    return member
        return UNAVAILABLE


class SwitchState(str, Enum):
    """Manual actuator position. Values are the wire strings."""

    ON = "ON"
    OFF = "OFF"

    @classmethod
    def parse(cls, value: object) -> "SwitchState | Sentinel":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalised = value.strip().upper()
            if normalised in ("ON", "OFF"):
                return cls(normalised)
        return UNAVAILABLE

    def inverted(self) -> "SwitchState":
        return SwitchState.OFF if self is SwitchState.ON else SwitchState.ON


class ControlField(str, Enum):
    """Writable transport fields."""

    MODE = "mode"
    FAN_MANUAL = "fan_manual"
    LIGHT_MANUAL = "light_manual"


ModeValue = Union[ControlMode, Sentinel]
SwitchValue = Union[SwitchState, Sentinel]


@dataclass(frozen=True)
class ControlState:
    """Authoritative control state as last reported by the transport."""

    mode: ModeValue = UNAVAILABLE
    fan_manual: SwitchValue = UNAVAILABLE
    light_manual: SwitchValue = UNAVAILABLE

    @property
    def manual_controls_enabled(self) -> bool:
        """Fan/light switches are only actionable in manual mode."""
        return self.mode is ControlMode.MANUAL

    def to_dict(self) -> dict:
        def _wire(value: object) -> str | None:
            return value.value if isinstance(value, Enum) and value is not UNAVAILABLE else None

        return {
            "mode": _wire(self.mode),
            "fan_manual": _wire(self.fan_manual),
            "light_manual": _wire(self.light_manual),
            "manual_controls_enabled": self.manual_controls_enabled,
        }
