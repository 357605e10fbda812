"""Shared test fixtures for the energy monitor."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from energy_monitor.config.manager import ConfigManager
from energy_monitor.config.schema import AppConfig
from energy_monitor.transport.memory import InMemoryTransport


@pytest.fixture
def config() -> AppConfig:
    """Provide a default test configuration."""
    return AppConfig()


@pytest.fixture
def no_solar_config() -> AppConfig:
    """Configuration with solar savings switched off, so bills equal tiered cost."""
    return AppConfig(pricing={"solar_savings_fraction": 0.0})


@pytest.fixture
def config_manager(tmp_path: Path) -> ConfigManager:
    """Provide a config manager with test paths."""
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text("transport:\n  type: memory\n")
    user = tmp_path / "config.yaml"
    mgr = ConfigManager(defaults_path=defaults, user_path=user)
    mgr.load()
    return mgr


@pytest.fixture
def sample_data() -> dict[str, Any]:
    """A complete snapshot as the installation publishes it."""
    return {
        "current": "0.25",
        "brightness": 80,
        "ldr": "12",
        "pir": "LOW",
        "rain": "HIGH",
        "fan_speed": 55,
        "temp": "31.5",
        "overall_current": 250,
        "mode": "ai",
        "fan_manual": "OFF",
        "light_manual": "ON",
    }


@pytest.fixture
def transport(sample_data: dict[str, Any]) -> InMemoryTransport:
    return InMemoryTransport(initial=sample_data)
