from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class Metric(str, Enum):
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"

    @property
    def title(self) -> str:
        return "Temperature" if self is Metric.TEMPERATURE else "Humidity"

    @property
    def unit(self) -> str:
        return "°C" if self is Metric.TEMPERATURE else "%"


class Granularity(str, Enum):
    HALF_HOUR = "half_hour"
    HOUR = "hour"


class Trend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass(frozen=True)
class Reading:
    timestamp: datetime
    temperature: float
    humidity: float

    def value(self, metric: Metric) -> float:
        if metric is Metric.TEMPERATURE:
            return self.temperature
        return self.humidity


@dataclass(frozen=True)
class WindowBucket:
    date: date
    label: str
    avg_temp: float
    avg_hum: float
    count: int


@dataclass(frozen=True)
class DayBucket:
    date: date
    temp_avg: float
    temp_min: float
    temp_max: float
    hum_avg: float
    hum_min: float
    hum_max: float
    count: int

    def for_metric(self, metric: Metric) -> tuple[float, float, float]:
        """(avg, min, max) for one metric."""
        if metric is Metric.TEMPERATURE:
            return self.temp_avg, self.temp_min, self.temp_max
        return self.hum_avg, self.hum_min, self.hum_max


@dataclass(frozen=True)
class FieldStats:
    min: str
    max: str
    avg: str


@dataclass(frozen=True)
class LiveReading:
    timestamp: datetime
    temperature: float
    humidity: float
    temp_level: str
    hum_level: str
    temp_trend: Trend | None = None
    hum_trend: Trend | None = None


@dataclass(frozen=True)
class SensorRecord:
    temperature: float
    humidity: float
    temp_level: str
    hum_level: str
    timestamp: datetime
