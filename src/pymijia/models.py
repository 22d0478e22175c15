"""Data model for advertisements, decoded fragments and aggregated readings.

Temperature and humidity are kept as raw integer tenths exactly as the
sensor broadcasts them; formatting into ``D.d`` strings happens only at
publish time.  A field that is ``None`` means "not observed", never zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Metric(StrEnum):
    """Metric names, in publish order."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    BATTERY = "battery"


@dataclass(frozen=True)
class Advertisement:
    """Radio-agnostic view of one received BLE advertisement."""

    address: str
    connectable: bool | None = None
    rssi: int | None = None
    local_name: str | None = None
    services: tuple[str, ...] = ()
    manufacturer_data: dict[int, bytes] = field(default_factory=dict)
    service_data: tuple[tuple[str, bytes], ...] = ()


class ReadingFragment(BaseModel):
    """Metric values decoded from a single advertisement."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    temperature: int | None = Field(default=None, description="Signed tenths of a degree Celsius")
    humidity: int | None = Field(default=None, ge=0, description="Tenths of a percent relative humidity")
    battery: int | None = Field(default=None, ge=0, le=100, description="Battery level in percent")

    @model_validator(mode="after")
    def _require_one_metric(self) -> ReadingFragment:
        if self.temperature is None and self.humidity is None and self.battery is None:
            raise ValueError("a reading fragment must carry at least one metric")
        return self


class AggregatedReading(BaseModel):
    """Latest known metrics for one device within the current scan cycle."""

    model_config = ConfigDict(extra="forbid")

    temperature: int | None = None
    humidity: int | None = None
    battery: int | None = None

    def merge(self, fragment: ReadingFragment) -> None:
        """Overwrite every metric present in *fragment*; keep the rest."""
        for name, value in fragment.model_dump(exclude_none=True).items():
            setattr(self, name, value)

    def is_empty(self) -> bool:
        return self.temperature is None and self.humidity is None and self.battery is None

    @classmethod
    def from_fragment(cls, fragment: ReadingFragment) -> AggregatedReading:
        return cls(**fragment.model_dump(exclude_none=True))


@dataclass(frozen=True)
class MetricMessage:
    """A single message ready to hand to the message bus."""

    metric: Metric
    topic: str
    payload: str
