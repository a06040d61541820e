from __future__ import annotations

import math
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from rhmeter.models.reading import Reading


@dataclass(frozen=True)
class Snapshot:
    generation: int
    readings: tuple[Reading, ...]
    replaced_at: datetime | None


class ReadingStore:
    """Holds the latest full reading window.

    The snapshot is only ever swapped whole; readers capture ``all()`` once and
    work on that tuple. Overlapping refreshes are last-write-wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = Snapshot(generation=0, readings=(), replaced_at=None)

    def replace_all(self, readings: Iterable[Reading]) -> Snapshot:
        ordered = tuple(sorted(readings, key=lambda r: r.timestamp))
        with self._lock:
            snapshot = Snapshot(
                generation=self._snapshot.generation + 1,
                readings=ordered,
                replaced_at=datetime.now(tz=timezone.utc),
            )
            self._snapshot = snapshot
        return snapshot

    def all(self) -> tuple[Reading, ...]:
        return self._snapshot.readings

    def snapshot(self) -> Snapshot:
        return self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot.readings)


def readings_from_timeseries(payload: Mapping[str, Sequence[Mapping[str, Any]]]) -> list[Reading]:
    """Join ``{"temperature": [...], "humidity": [...]}`` series on timestamp.

    Each entry is ``{"ts": <epoch ms>, "value": <str|number>}``. Timestamps
    present in only one series, or with an unparsable value, are dropped.
    """
    temps = _series_by_ts(payload.get("temperature") or [])
    hums = _series_by_ts(payload.get("humidity") or [])

    readings: list[Reading] = []
    for ts, temp in temps.items():
        hum = hums.get(ts)
        if hum is None:
            continue
        readings.append(
            Reading(
                timestamp=datetime.fromtimestamp(ts / 1000, tz=timezone.utc),
                temperature=temp,
                humidity=hum,
            )
        )
    readings.sort(key=lambda r: r.timestamp)
    return readings


def _series_by_ts(items: Sequence[Mapping[str, Any]]) -> dict[int, float]:
    out: dict[int, float] = {}
    for item in items:
        ts = _int_or_none(item.get("ts"))
        value = _float_or_none(item.get("value"))
        if ts is None or value is None:
            continue
        out[ts] = value
    return out


def _int_or_none(v: Any) -> int | None:
    try:
        if v is None:
            return None
        return int(v)
    except Exception:
        return None


def _float_or_none(v: Any) -> float | None:
    try:
        if v is None:
            return None
        value = float(v)
    except Exception:
        return None
    return value if math.isfinite(value) else None
