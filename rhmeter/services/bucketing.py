from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal

from rhmeter.models.reading import DayBucket, FieldStats, Metric, Reading, WindowBucket

NO_DATA = "--"

WindowKey = tuple[date, int, int]

_ONE_DECIMAL = Decimal("0.1")


def round1(value: float) -> float:
    """Round half away from zero to one decimal, on the exact binary value."""
    return float(Decimal(value).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def format1(value: float) -> str:
    return f"{round1(value):.1f}"


def local_time(ts: datetime, tz: tzinfo | None = None) -> datetime:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz or timezone.utc)


def local_date(ts: datetime, tz: tzinfo | None = None) -> date:
    return local_time(ts, tz).date()


def half_hour_key(ts: datetime, tz: tzinfo | None = None) -> WindowKey:
    local = local_time(ts, tz)
    return local.date(), local.hour, 0 if local.minute < 30 else 30


def hour_key(ts: datetime, tz: tzinfo | None = None) -> WindowKey:
    local = local_time(ts, tz)
    return local.date(), local.hour, 0


def window_label(key: WindowKey) -> str:
    _, hour, minute = key
    return f"{hour:02d}:{minute:02d}"


def _mean(values: list[float]) -> float:
    return sum(values) / len(values)


def _bucket_windows(readings: Iterable[Reading], key_fn, tz: tzinfo | None) -> list[WindowBucket]:
    groups: dict[WindowKey, tuple[list[float], list[float]]] = {}
    for r in readings:
        temps, hums = groups.setdefault(key_fn(r.timestamp, tz), ([], []))
        temps.append(r.temperature)
        hums.append(r.humidity)

    return [
        WindowBucket(
            date=key[0],
            label=window_label(key),
            avg_temp=round1(_mean(temps)),
            avg_hum=round1(_mean(hums)),
            count=len(temps),
        )
        for key, (temps, hums) in sorted(groups.items())
    ]


def bucket_half_hour(
    readings: Iterable[Reading], *, tz: tzinfo | None = None
) -> list[WindowBucket]:
    """Average readings into 30-minute windows (``HH:00`` / ``HH:30``)."""
    return _bucket_windows(readings, half_hour_key, tz)


def bucket_hourly(readings: Iterable[Reading], *, tz: tzinfo | None = None) -> list[WindowBucket]:
    """Average readings into 1-hour windows (``HH:00``)."""
    return _bucket_windows(readings, hour_key, tz)


def group_by_day(readings: Iterable[Reading], *, tz: tzinfo | None = None) -> list[DayBucket]:
    """Aggregate readings by local calendar day with avg/min/max per metric."""
    groups: dict[date, tuple[list[float], list[float]]] = {}
    for r in readings:
        temps, hums = groups.setdefault(local_date(r.timestamp, tz), ([], []))
        temps.append(r.temperature)
        hums.append(r.humidity)

    return [
        DayBucket(
            date=day,
            temp_avg=round1(_mean(temps)),
            temp_min=round1(min(temps)),
            temp_max=round1(max(temps)),
            hum_avg=round1(_mean(hums)),
            hum_min=round1(min(hums)),
            hum_max=round1(max(hums)),
            count=len(temps),
        )
        for day, (temps, hums) in sorted(groups.items())
    ]


def stats(readings: Iterable[Reading], metric: Metric) -> FieldStats:
    """Min / max / avg of one metric as one-decimal strings.

    An empty input yields ``"--"`` for every field so callers can tell
    "no data" apart from a real zero.
    """
    values = [r.value(metric) for r in readings]
    if not values:
        return FieldStats(min=NO_DATA, max=NO_DATA, avg=NO_DATA)

    lo = hi = values[0]
    for v in values[1:]:
        if v < lo:
            lo = v
        if v > hi:
            hi = v
    return FieldStats(min=format1(lo), max=format1(hi), avg=format1(_mean(values)))
