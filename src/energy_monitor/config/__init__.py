"""Configuration management for the energy monitor."""

from energy_monitor.config.schema import AppConfig
from energy_monitor.config.manager import ConfigManager

__all__ = ["AppConfig", "ConfigManager"]
