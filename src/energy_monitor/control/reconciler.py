"""Control state reconciliation between user intents and the store.

The store is the single source of truth. Intents are written to it and the
local ``ControlState`` only changes when a snapshot reports the new value;
nothing is predicted locally, so the UI never shows a state the hardware has
not confirmed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine

from energy_monitor.control.state import ControlField, ControlMode, ControlState, SwitchState
from energy_monitor.telemetry.snapshot import TelemetrySnapshot
from energy_monitor.telemetry.values import UNAVAILABLE

logger = logging.getLogger(__name__)

# (field, value) -> None
FieldWriter = Callable[[str, str], Coroutine[Any, Any, None]]


class ControlError(Exception):
    """An intent that cannot be issued in the current state."""


class ManualControlUnavailable(ControlError):
    """Fan/light switches are only actionable in manual mode."""


class ControlStateUnknown(ControlError):
    """The store has not reported the value an intent depends on."""


@dataclass(frozen=True)
class ControlIntent:
    field: ControlField
    value: str
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ControlStateReconciler:
    """Holds the mirrored control state and issues single-field writes."""

    def __init__(self, writer: FieldWriter) -> None:
        self._write = writer
        self._state = ControlState()
        self._pending: set[asyncio.Task] = set()
        self._last_intent: ControlIntent | None = None

    @property
    def state(self) -> ControlState:
        return self._state

    @property
    def last_intent(self) -> ControlIntent | None:
        return self._last_intent

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ── Inbound (authoritative) ──────────────────────────────

    def apply_snapshot(self, snapshot: TelemetrySnapshot) -> bool:
        """Overwrite the local state with the store's. Returns True if it changed."""
        return self.apply_state(snapshot.control)

    def apply_state(self, reported: ControlState) -> bool:
        previous = self._state
        if reported == previous:
            return False
        self._state = reported
        logger.info(
            "Control state: mode=%s fan=%s light=%s (was mode=%s fan=%s light=%s)",
            _name(reported.mode), _name(reported.fan_manual), _name(reported.light_manual),
            _name(previous.mode), _name(previous.fan_manual), _name(previous.light_manual),
        )
        return True

    # ── Outbound intents ─────────────────────────────────────

    def request_mode(self, mode: ControlMode) -> asyncio.Task:
        return self._dispatch(ControlField.MODE, ControlMode(mode).value)

    def toggle_mode(self) -> asyncio.Task:
        current = self._state.mode
        if current is UNAVAILABLE:
            raise ControlStateUnknown("Operating mode has not been reported yet")
        target = ControlMode.MANUAL if current is ControlMode.AUTONOMOUS else ControlMode.AUTONOMOUS
        return self.request_mode(target)

    def request_fan(self, state: SwitchState) -> asyncio.Task:
        self._require_manual("fan")
        return self._dispatch(ControlField.FAN_MANUAL, SwitchState(state).value)

    def toggle_fan(self) -> asyncio.Task:
        return self.request_fan(_flip(self._state.fan_manual))

    def request_light(self, state: SwitchState) -> asyncio.Task:
        self._require_manual("light")
        return self._dispatch(ControlField.LIGHT_MANUAL, SwitchState(state).value)

    def toggle_light(self) -> asyncio.Task:
        return self.request_light(_flip(self._state.light_manual))

    async def cancel_pending(self) -> None:
        """Cancel in-flight writes (teardown)."""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── Internals ────────────────────────────────────────────

    def _require_manual(self, device: str) -> None:
        if not self._state.manual_controls_enabled:
            raise ManualControlUnavailable(
                f"Cannot switch {device}: mode is {_name(self._state.mode)}, not manual"
            )

    def _dispatch(self, control_field: ControlField, value: str) -> asyncio.Task:
        # Raises before the write coroutine exists when no loop is running
        loop = asyncio.get_running_loop()
        intent = ControlIntent(control_field, value)
        self._last_intent = intent
        logger.info("Control intent: %s=%s", control_field.value, value)

        task = loop.create_task(
            self._write(control_field.value, value),
            name=f"control-write-{control_field.value}",
        )
        self._pending.add(task)
        task.add_done_callback(self._on_write_done)
        return task

    def _on_write_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Control write failed (%s): %s", task.get_name(), exc)


def _flip(current: Any) -> SwitchState:
    # Unknown switch position: the only sensible request is to turn it on
    if current is UNAVAILABLE:
        return SwitchState.ON
    return current.inverted()


def _name(value: Any) -> str:
    return getattr(value, "name", str(value))
