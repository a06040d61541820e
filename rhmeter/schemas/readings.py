from __future__ import annotations

import datetime as dt
import math
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Level = Literal["normal", "warning", "critical"]


class SensorPayload(BaseModel):
    """Record posted by the cloud rule engine to ``/save-data``."""

    model_config = ConfigDict(populate_by_name=True)

    temperature: float
    humidity: float
    temp_level: Level | None = Field(default=None, alias="tempLevel")
    hum_level: Level | None = Field(default=None, alias="humLevel")
    timestamp: datetime | None = None

    @field_validator("temperature", "humidity")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v

    @field_validator("timestamp")
    @classmethod
    def _timestamp_to_utc(cls, v: datetime | None) -> datetime | None:
        if v is None:
            return None
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class ReadingRead(BaseModel):
    timestamp: datetime
    temperature: float
    humidity: float


class WindowBucketRead(BaseModel):
    date: dt.date
    label: str
    avg_temp: float
    avg_hum: float
    count: int = Field(ge=1)


class DayBucketRead(BaseModel):
    date: dt.date
    temp_avg: float
    temp_min: float
    temp_max: float
    hum_avg: float
    hum_min: float
    hum_max: float
    count: int = Field(ge=1)


class FieldStatsRead(BaseModel):
    min: str
    max: str
    avg: str


class RangeStats(BaseModel):
    start: dt.date
    end: dt.date
    count: int = Field(ge=0)
    temperature: FieldStatsRead
    humidity: FieldStatsRead


class SummaryRowRead(BaseModel):
    label: str
    avg: float
    min: float
    max: float


class RangeSummary(BaseModel):
    metric: str
    granularity: Literal["hour", "day"]
    start: dt.date
    end: dt.date
    headers: list[str]
    rows: list[SummaryRowRead]


class LiveReadingRead(BaseModel):
    timestamp: datetime
    temperature: float
    humidity: float
    temp_level: str
    hum_level: str
    temp_trend: str | None = None
    hum_trend: str | None = None


class LinkStatusRead(BaseModel):
    online: bool
    consecutive_failures: int = Field(ge=0)
    last_success_at: datetime | None = None
    snapshot_generation: int = Field(ge=0)
    snapshot_size: int = Field(ge=0)
    snapshot_replaced_at: datetime | None = None


class HistoryRefreshResponse(BaseModel):
    ok: bool
    count: int = Field(ge=0)
    generation: int = Field(ge=0)
    error: str | None = None
