"""Protocol for the real-time store the service reads from and writes to."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, Union, runtime_checkable

# Writable fields and the exact values the store accepts
WRITABLE_VALUES: dict[str, frozenset[str]] = {
    "mode": frozenset({"ai", "manual"}),
    "fan_manual": frozenset({"ON", "OFF"}),
    "light_manual": frozenset({"ON", "OFF"}),
}


@dataclass(frozen=True)
class SnapshotReceived:
    """Whole-snapshot update pushed by the store."""

    data: Any
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class PreviousBillReceived:
    """The separately stored ``prev_month`` reference bill."""

    value: Any


@dataclass(frozen=True)
class TransportUnavailable:
    """The subscription failed; no further events follow on it."""

    reason: str


TransportEvent = Union[SnapshotReceived, PreviousBillReceived, TransportUnavailable]


def validate_write(field_name: str, value: str) -> None:
    """Reject writes the store does not accept."""
    allowed = WRITABLE_VALUES.get(field_name)
    if allowed is None:
        raise ValueError(f"Field '{field_name}' is not writable")
    if value not in allowed:
        raise ValueError(f"Invalid value {value!r} for '{field_name}' (expected one of {sorted(allowed)})")


@runtime_checkable
class TelemetryTransport(Protocol):
    """Implementations: InMemoryTransport, MQTTTransport."""

    def events(self) -> AsyncIterator[TransportEvent]:
        """Open a fresh subscription.

        Yields events until the consumer stops iterating (cancellation closes
        the subscription and releases its resources) or a
        ``TransportUnavailable`` event ends it.
        """
        ...

    async def write_field(self, field_name: str, value: str) -> None:
        """Write a single field to the store."""
        ...

    async def close(self) -> None:
        """Release any resources held outside of subscriptions."""
        ...
