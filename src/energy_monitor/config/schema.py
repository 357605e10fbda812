"""Pydantic configuration models for all service settings."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class ElectricalConfig(BaseModel):
    system_voltage_v: float = Field(5.0, gt=0.0)
    max_rated_amps: float = Field(0.5, gt=0.0)


class PricingConfig(BaseModel):
    """Flat hourly pricing.

    Hourly cost/savings use this flat per-Wh rate. The monthly estimate uses
    the tiered table in ``TariffConfig`` instead; the two are kept separate on
    purpose because they price different horizons.
    """
    flat_rate_per_wh: float = Field(0.000218, ge=0.0)  # RM/Wh
    solar_savings_fraction: float = Field(0.3, ge=0.0, le=1.0)
    currency: str = "RM"


class TierConfig(BaseModel):
    capacity_kwh: float | None = None  # None = unbounded (last tier only)
    rate_per_kwh: float


def _reference_tiers() -> list[TierConfig]:
    return [
        TierConfig(capacity_kwh=200, rate_per_kwh=0.218),
        TierConfig(capacity_kwh=100, rate_per_kwh=0.334),
        TierConfig(capacity_kwh=300, rate_per_kwh=0.516),
        TierConfig(capacity_kwh=300, rate_per_kwh=0.546),
        TierConfig(capacity_kwh=None, rate_per_kwh=0.571),
    ]


class TariffConfig(BaseModel):
    tiers: list[TierConfig] = Field(default_factory=_reference_tiers)


class ClassifierConfig(BaseModel):
    general_thresholds: tuple[float, float] = (30.0, 70.0)
    energy_thresholds: tuple[float, float] = (10.0, 50.0)

    @model_validator(mode="after")
    def _check_ordering(self) -> "ClassifierConfig":
        for name in ("general_thresholds", "energy_thresholds"):
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"{name}: low threshold {low} exceeds high threshold {high}")
        return self


class MQTTConfig(BaseModel):
    broker_host: str = "localhost"
    broker_port: int = 1883
    username: str = ""
    password: str = ""
    client_id: str = ""
    topic_prefix: str = "energy_monitor"


class TransportConfig(BaseModel):
    type: str = Field("mqtt", pattern="^(mqtt|memory)$")
    mqtt: MQTTConfig = MQTTConfig()
    publish_derived_view: bool = True


class DashboardConfig(BaseModel):
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080
    sse_interval_seconds: int = 5


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: str = ""


class AppConfig(BaseModel):
    """Root configuration model containing all service settings."""

    electrical: ElectricalConfig = ElectricalConfig()
    pricing: PricingConfig = PricingConfig()
    tariff: TariffConfig = TariffConfig()
    classifier: ClassifierConfig = ClassifierConfig()
    transport: TransportConfig = TransportConfig()
    dashboard: DashboardConfig = DashboardConfig()
    logging: LoggingConfig = LoggingConfig()
