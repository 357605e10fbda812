"""Map readings to alert bands and display colours."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from energy_monitor.config.schema import ClassifierConfig
from energy_monitor.telemetry.values import parse_numeric


class StatusContext(str, Enum):
    GENERAL = "general"  # ambient sensors on a 0-100 scale
    ENERGY = "energy"  # savings/output figures; low is bad
    BINARY = "binary"  # actuators
    SECONDARY_BINARY = "secondary_binary"  # auxiliary digital sensors


class Band(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    GOOD = "good"
    INFO = "info"
    INDETERMINATE = "indeterminate"


BAND_COLORS: dict[Band, str] = {
    Band.CRITICAL: "#e74c3c",
    Band.WARNING: "#f39c12",
    Band.GOOD: "#2ecc71",
    Band.INFO: "#007bff",
    Band.INDETERMINATE: "#9b59b6",
}

_HIGH_WORDS = frozenset({"HIGH", "ON"})
_LOW_WORDS = frozenset({"LOW", "OFF"})


@dataclass(frozen=True)
class Classification:
    band: Band
    color: str


def _result(band: Band) -> Classification:
    return Classification(band, BAND_COLORS[band])


def _binary_word(value: Any) -> str | None:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        word = value.strip().upper()
        if word in _HIGH_WORDS or word in _LOW_WORDS:
            return word
    return None


def classify(
    value: Any,
    context: StatusContext | str,
    config: ClassifierConfig | None = None,
) -> Classification:
    """Classify any reading. Never raises on the value.

    Placeholders, NaN, unparseable text and unknown objects all come back
    as ``Band.INDETERMINATE``. ``context`` may also be given by its value.
    """
    context = StatusContext(context)
    config = config or ClassifierConfig()
    word = _binary_word(value)
    number = parse_numeric(value) if word is None else None

    if context is StatusContext.SECONDARY_BINARY:
        if word is not None or isinstance(number, float):
            return _result(Band.INFO)
        return _result(Band.INDETERMINATE)

    if word is not None:
        return _result(Band.GOOD if word in _HIGH_WORDS else Band.WARNING)

    if not isinstance(number, float):
        return _result(Band.INDETERMINATE)

    if context is StatusContext.BINARY:
        if number == 1:
            return _result(Band.GOOD)
        if number == 0:
            return _result(Band.WARNING)
        return _result(Band.INDETERMINATE)

    if context is StatusContext.ENERGY:
        low, high = config.energy_thresholds
    else:
        low, high = config.general_thresholds

    if number <= low:
        return _result(Band.CRITICAL)
    if number <= high:
        return _result(Band.WARNING)
    return _result(Band.GOOD)


def gauge_percent(value: Any) -> float:
    """Ring fill for a gauge: numbers clamp to 0-100, anything else is full."""
    number = parse_numeric(value)
    if isinstance(number, float):
        return min(100.0, max(0.0, number))
    return 100.0


class StatusClassifier:
    def __init__(self, config: ClassifierConfig | None = None) -> None:
        self._config = config or ClassifierConfig()

    def classify(self, value: Any, context: StatusContext) -> Classification:
        return classify(value, context, self._config)
