"""Smart Energy Monitor: telemetry-to-billing derivation service."""

try:
    from importlib.metadata import version as _pkg_version
    __version__ = _pkg_version("smart-energy-monitor")
except Exception:
    __version__ = "dev"
