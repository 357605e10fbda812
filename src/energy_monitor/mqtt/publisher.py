"""MQTT publisher for derived views and service status."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Coroutine

from energy_monitor.mqtt.topics import build_topics
from energy_monitor.pipeline.view import DerivedView

logger = logging.getLogger(__name__)

# Type for async publish function: (topic, payload, retain) -> None
PublishFn = Callable[[str, str, bool], Coroutine[Any, Any, None]]


class ViewPublisher:
    """Publishes each DerivedView as retained JSON for dashboards to render."""

    def __init__(self, publish_fn: PublishFn, topic_prefix: str = "energy_monitor") -> None:
        self._publish = publish_fn
        self._topics = build_topics(topic_prefix)
        self._last_sequence = 0

    @property
    def last_sequence(self) -> int:
        return self._last_sequence

    async def publish_view(self, view: DerivedView) -> None:
        """Publish a view unless a newer one has already gone out."""
        if view.sequence <= self._last_sequence:
            logger.debug("Skipping stale view #%d", view.sequence)
            return
        self._last_sequence = view.sequence
        payload = json.dumps(view.to_dict(), separators=(",", ":"))
        await self._publish(self._topics["derived"], payload, True)

    async def publish_status(self, online: bool = True) -> None:
        """Publish service online/offline status."""
        await self._publish(self._topics["status"], "online" if online else "offline", True)
