"""Parse-with-result helpers for raw telemetry values.

Raw snapshot fields arrive as numbers, numeric strings, placeholders or not at
all. ``parse_numeric`` turns each into exactly one of:

- a finite ``float``;
- ``UNAVAILABLE`` when the field is absent or empty;
- ``MalformedNumeric`` carrying the raw text when something was sent but it is
  not a usable number (including NaN and infinities).

Downstream code branches on these types instead of on coercion side effects.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class Sentinel(Enum):
    """Explicit "not yet known" marker, distinct from zero."""

    UNAVAILABLE = "unavailable"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return self.name


UNAVAILABLE = Sentinel.UNAVAILABLE


@dataclass(frozen=True)
class MalformedNumeric:
    """A value that was present but could not be read as a number."""

    raw: str

    def __bool__(self) -> bool:
        return False


ParsedNumber = Union[float, Sentinel, MalformedNumeric]


def parse_numeric(value: Any) -> ParsedNumber:
    """Parse an arbitrary telemetry value into a float or a marker."""
    if value is None or value is UNAVAILABLE:
        return UNAVAILABLE
    if isinstance(value, MalformedNumeric):
        return value
    if isinstance(value, bool):
        # bool is an int subclass; a true/false reading is not a quantity
        return MalformedNumeric(str(value))
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # Integers beyond float range, e.g. oversized JSON literals
            return MalformedNumeric(_overflow_text(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return UNAVAILABLE
        try:
            number = float(text)
        except ValueError:
            return MalformedNumeric(text)
    else:
        return MalformedNumeric(repr(value))

    if not math.isfinite(number):
        return MalformedNumeric(str(value))
    return number


def _overflow_text(value: int) -> str:
    try:
        return str(value)
    except ValueError:
        # Past the interpreter's int-to-str digit limit
        return f"<{value.bit_length()}-bit integer>"


def number_or_zero(value: ParsedNumber) -> float:
    """Safe arithmetic default: markers count as 0."""
    return value if isinstance(value, float) else 0.0


def display_value(value: Any) -> Any:
    """JSON-friendly form: floats stay, markers become their text."""
    if value is UNAVAILABLE:
        return None
    if isinstance(value, MalformedNumeric):
        return value.raw
    if isinstance(value, Enum):
        return value.value
    return value
