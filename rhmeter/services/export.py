from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timezone, tzinfo

from openpyxl import Workbook, load_workbook
from openpyxl.utils import get_column_letter

from rhmeter.models.reading import DayBucket, Metric, Reading
from rhmeter.services.bucketing import bucket_hourly, group_by_day, local_time, round1
from rhmeter.services.range_query import filter_by_range, is_same_day

CSV_HEADER = ["Timestamp", "Temperature", "Humidity"]
CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SUMMARY_COLUMN_WIDTHS = [16, 26, 26, 26]
OVERVIEW_COLUMN_WIDTHS = [12, 24, 22]


class NoData(Exception):
    """Nothing to export; the message is meant for the user."""

    def __init__(self, message: str = "No data yet.") -> None:
        super().__init__(message)
        self.message = message


class NoDataInRange(NoData):
    def __init__(self, message: str = "No data in selected range.") -> None:
        super().__init__(message)


class ExportError(Exception):
    """Serialization failed; wraps the underlying error message."""


@dataclass(frozen=True)
class SummaryRow:
    label: str
    avg: float
    min: float
    max: float


@dataclass(frozen=True)
class SummaryTable:
    title: str
    sheet_name: str
    headers: list[str]
    rows: list[list[object]]
    filename: str
    column_widths: list[int] = field(default_factory=list)


def day_table_rows(days: Iterable[DayBucket], metric: Metric) -> list[SummaryRow]:
    rows: list[SummaryRow] = []
    for d in days:
        avg, lo, hi = d.for_metric(metric)
        rows.append(SummaryRow(label=d.date.isoformat(), avg=avg, min=lo, max=hi))
    return rows


def hourly_summary_rows(
    readings: Sequence[Reading], metric: Metric, *, tz: tzinfo | None = None
) -> list[SummaryRow]:
    """Hour-of-day rows computed straight from raw readings.

    Kept separate from the half-hour chart buckets: both are independent views
    over the same raw set.
    """
    by_label: dict[str, list[float]] = {}
    for r in readings:
        label = f"{local_time(r.timestamp, tz).hour:02d}:00"
        by_label.setdefault(label, []).append(r.value(metric))

    return [
        SummaryRow(
            label=label,
            avg=round1(sum(values) / len(values)),
            min=round1(min(values)),
            max=round1(max(values)),
        )
        for label, values in sorted(by_label.items())
    ]


def summary_headers(metric: Metric, *, hourly: bool) -> list[str]:
    unit = f"{metric.title} ({metric.unit})"
    return ["Hour" if hourly else "Date", f"Avg {unit}", f"Min {unit}", f"Max {unit}"]


def summary_filename(metric: Metric, start: date, end: date) -> str:
    if is_same_day(start, end):
        return f"{metric.title}_Hourly_{start.isoformat()}.xlsx"
    return f"{metric.title}_Daily_{start.isoformat()}_to_{end.isoformat()}.xlsx"


def build_range_summary(
    readings: Iterable[Reading],
    metric: Metric,
    start: date,
    end: date,
    *,
    tz: tzinfo | None = None,
) -> SummaryTable:
    """Statistic table for the selected date range.

    Same-day selections give hourly rows; longer ranges give one row per day.
    """
    subset = filter_by_range(readings, start, end, tz=tz)
    if not subset:
        raise NoDataInRange()

    hourly = is_same_day(start, end)
    if hourly:
        rows = hourly_summary_rows(subset, metric, tz=tz)
    else:
        rows = day_table_rows(group_by_day(subset, tz=tz), metric)

    return SummaryTable(
        title=f"{metric.title} {'Hourly' if hourly else 'Daily'} Summary",
        sheet_name=metric.title,
        headers=summary_headers(metric, hourly=hourly),
        rows=[[r.label, r.avg, r.min, r.max] for r in rows],
        filename=summary_filename(metric, start, end),
        column_widths=list(SUMMARY_COLUMN_WIDTHS),
    )


def build_hourly_overview(
    readings: Sequence[Reading], *, today: date, tz: tzinfo | None = None
) -> SummaryTable:
    """Hourly averages over the whole snapshot."""
    if not readings:
        raise NoData()

    buckets = bucket_hourly(readings, tz=tz)
    return SummaryTable(
        title="Hourly Overview",
        sheet_name="SensorData",
        headers=["Hour", "Avg Temperature (°C)", "Avg Humidity (%)"],
        rows=[[f"{b.date.isoformat()} {b.label}", b.avg_temp, b.avg_hum] for b in buckets],
        filename=f"FactoryMonitor_{today.isoformat()}.xlsx",
        column_widths=list(OVERVIEW_COLUMN_WIDTHS),
    )


def csv_filename(today: date) -> str:
    return f"sensor_log_{today.isoformat()}.csv"


def readings_to_csv(readings: Sequence[Reading]) -> str:
    if not readings:
        raise NoData()

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in readings:
        ts = r.timestamp.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        writer.writerow([ts, r.temperature, r.humidity])
    return buf.getvalue()


def summary_to_xlsx(table: SummaryTable) -> bytes:
    try:
        wb = Workbook()
        ws = wb.active
        ws.title = table.sheet_name
        ws.append(table.headers)
        for row in table.rows:
            ws.append(row)
        for idx, width in enumerate(table.column_widths, start=1):
            ws.column_dimensions[get_column_letter(idx)].width = width

        out = io.BytesIO()
        wb.save(out)
    except Exception as e:  # noqa: BLE001 - surfaced to the user
        raise ExportError(str(e)) from e
    return out.getvalue()


def read_xlsx_rows(data: bytes) -> list[list[object]]:
    wb = load_workbook(io.BytesIO(data), read_only=True)
    try:
        ws = wb.active
        return [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
