"""MQTT topic constants."""

from __future__ import annotations


def build_topics(prefix: str = "energy_monitor") -> dict[str, str]:
    """Build all MQTT topic strings from a configurable prefix."""
    return {
        "status": f"{prefix}/status",
        "snapshot": f"{prefix}/snapshot",
        "prev_month": f"{prefix}/prev_month",
        "derived": f"{prefix}/derived",
    }


def field_command_topic(prefix: str, field_name: str) -> str:
    """Build the command topic for a single writable field."""
    return f"{prefix}/set/{field_name}"
