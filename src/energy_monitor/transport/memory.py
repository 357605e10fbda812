"""In-process store used for local runs and tests.

Behaves like the remote store: subscribers get the current state on
subscription and a full snapshot after every change, and field writes are
echoed back as a new snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from energy_monitor.transport.base import (
    PreviousBillReceived,
    SnapshotReceived,
    TransportEvent,
    TransportUnavailable,
    validate_write,
)

logger = logging.getLogger(__name__)


class InMemoryTransport:
    def __init__(
        self,
        initial: dict[str, Any] | None = None,
        previous_bill: Any = None,
    ) -> None:
        self._state: dict[str, Any] | None = dict(initial) if initial is not None else None
        self._previous_bill = previous_bill
        self._subscribers: set[asyncio.Queue[TransportEvent]] = set()
        self.writes: list[tuple[str, str]] = []

    @property
    def state(self) -> dict[str, Any] | None:
        return dict(self._state) if self._state is not None else None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def events(self) -> AsyncIterator[TransportEvent]:
        queue: asyncio.Queue[TransportEvent] = asyncio.Queue()
        self._subscribers.add(queue)
        logger.debug("Subscriber attached (%d total)", len(self._subscribers))
        try:
            if self._previous_bill is not None:
                yield PreviousBillReceived(self._previous_bill)
            if self._state is not None:
                yield SnapshotReceived(dict(self._state))
            while True:
                event = await queue.get()
                yield event
                if isinstance(event, TransportUnavailable):
                    return
        finally:
            self._subscribers.discard(queue)
            logger.debug("Subscriber detached (%d remaining)", len(self._subscribers))

    async def write_field(self, field_name: str, value: str) -> None:
        validate_write(field_name, value)
        self.writes.append((field_name, value))
        self.update(**{field_name: value})

    async def close(self) -> None:
        self._subscribers.clear()

    def push_snapshot(self, data: dict[str, Any]) -> None:
        """Replace the whole stored object (a device-side update)."""
        self._state = dict(data)
        self._broadcast(SnapshotReceived(dict(self._state)))

    def update(self, **fields: Any) -> None:
        """Change some fields and push the resulting whole snapshot."""
        self._state = {**(self._state or {}), **fields}
        self._broadcast(SnapshotReceived(dict(self._state)))

    def set_previous_bill(self, value: Any) -> None:
        self._previous_bill = value
        self._broadcast(PreviousBillReceived(value))

    def fail(self, reason: str = "connection lost") -> None:
        """Terminate every open subscription with an unavailable event."""
        self._broadcast(TransportUnavailable(reason))

    def _broadcast(self, event: TransportEvent) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(event)
