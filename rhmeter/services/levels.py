from __future__ import annotations

from dataclasses import dataclass

from rhmeter.models.reading import Trend

TEMP_TREND_DELTA = 0.2
HUM_TREND_DELTA = 0.5


@dataclass(frozen=True)
class LevelThresholds:
    temp_normal_max: float = 27.0
    temp_warning_max: float = 35.0
    hum_dry_limit: float = 40.0
    hum_wet_limit: float = 70.0

    def temp_level(self, value: float) -> str:
        if value <= self.temp_normal_max:
            return "normal"
        if value <= self.temp_warning_max:
            return "warning"
        return "critical"

    def hum_level(self, value: float) -> str:
        if value < self.hum_dry_limit:
            return "critical"
        if value <= self.hum_wet_limit:
            return "normal"
        return "warning"


def trend(current: float, previous: float | None, *, delta: float) -> Trend | None:
    if previous is None:
        return None
    if current > previous + delta:
        return Trend.RISING
    if current < previous - delta:
        return Trend.FALLING
    return Trend.STABLE
