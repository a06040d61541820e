from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from rhmeter.models.reading import Reading, SensorRecord


def ts_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def reading(iso: str, temperature: float, humidity: float) -> Reading:
    ts = datetime.fromisoformat(iso)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return Reading(timestamp=ts, temperature=temperature, humidity=humidity)


def timeseries(readings: list[Reading]) -> dict[str, list[dict[str, Any]]]:
    """Shape readings the way the telemetry API returns them (newest first, string values)."""
    ordered = sorted(readings, key=lambda r: r.timestamp, reverse=True)
    return {
        "temperature": [{"ts": ts_ms(r.timestamp), "value": str(r.temperature)} for r in ordered],
        "humidity": [{"ts": ts_ms(r.timestamp), "value": str(r.humidity)} for r in ordered],
    }


@dataclass
class FakeSensorRecordRepository:
    _records: list[SensorRecord]
    fail: bool

    def __init__(self) -> None:
        self._records = []
        self.fail = False

    @property
    def records(self) -> list[SensorRecord]:
        return list(self._records)

    def ping(self) -> None:
        if self.fail:
            raise ConnectionError("influx down")
        return None

    def write_record(self, record: SensorRecord) -> None:
        if self.fail:
            raise ConnectionError("influx down")
        self._records.append(record)


class FakeTelemetryClient:
    def __init__(self) -> None:
        self.latest_payloads: list[dict[str, Any] | Exception] = []
        self.history_payloads: list[dict[str, Any] | Exception] = []
        self.history_calls: list[dict[str, Any]] = []
        self.reset_calls = 0
        # When set, the next history fetch blocks until the event is released.
        self.history_gate: threading.Event | None = None
        self.history_entered = threading.Event()

    def close(self) -> None:
        return None

    def reset_token(self) -> None:
        self.reset_calls += 1

    def fetch_latest(self) -> dict[str, Any]:
        item = self.latest_payloads.pop(0) if self.latest_payloads else {}
        if isinstance(item, Exception):
            raise item
        return item

    def fetch_history(self, *, start: datetime, stop: datetime, limit: int) -> dict[str, Any]:
        self.history_calls.append({"start": start, "stop": stop, "limit": limit})
        item = self.history_payloads.pop(0) if self.history_payloads else {}
        gate = self.history_gate
        if gate is not None:
            self.history_gate = None
            self.history_entered.set()
            gate.wait(timeout=5.0)
        if isinstance(item, Exception):
            raise item
        return item
