from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from rhmeter.api.deps import (
    ReadUser,
    WriteUser,
    get_link_status,
    get_reading_store,
    get_settings,
    get_sync_service,
    resolve_range,
)
from rhmeter.core.config import Settings
from rhmeter.models.reading import Granularity, LiveReading, Metric
from rhmeter.schemas.readings import (
    DayBucketRead,
    FieldStatsRead,
    HistoryRefreshResponse,
    LinkStatusRead,
    LiveReadingRead,
    RangeStats,
    RangeSummary,
    ReadingRead,
    SummaryRowRead,
    WindowBucketRead,
)
from rhmeter.services.bucketing import bucket_half_hour, bucket_hourly, group_by_day, stats
from rhmeter.services.export import NoData, build_range_summary
from rhmeter.services.range_query import filter_by_range, is_same_day
from rhmeter.services.store import ReadingStore
from rhmeter.services.telemetry import LinkStatus, TelemetrySyncService

router = APIRouter(prefix="/readings")

StartDate = Annotated[date | None, Query(description="First local calendar day (YYYY-MM-DD)")]
EndDate = Annotated[date | None, Query(description="Last local calendar day, inclusive")]


@router.get("", response_model=list[ReadingRead])
def list_readings(
    _: ReadUser,
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    start: StartDate = None,
    end: EndDate = None,
) -> list[ReadingRead]:
    start_d, end_d = resolve_range(start, end, settings)
    rows = filter_by_range(store.all(), start_d, end_d, tz=settings.tzinfo)
    return [ReadingRead.model_validate(r.__dict__) for r in rows]


@router.get("/stats", response_model=RangeStats)
def range_stats(
    _: ReadUser,
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    start: StartDate = None,
    end: EndDate = None,
) -> RangeStats:
    start_d, end_d = resolve_range(start, end, settings)
    subset = filter_by_range(store.all(), start_d, end_d, tz=settings.tzinfo)
    return RangeStats(
        start=start_d,
        end=end_d,
        count=len(subset),
        temperature=FieldStatsRead.model_validate(stats(subset, Metric.TEMPERATURE).__dict__),
        humidity=FieldStatsRead.model_validate(stats(subset, Metric.HUMIDITY).__dict__),
    )


@router.get("/windows", response_model=list[WindowBucketRead])
def window_buckets(
    _: ReadUser,
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    granularity: Granularity = Granularity.HALF_HOUR,
    start: StartDate = None,
    end: EndDate = None,
) -> list[WindowBucketRead]:
    start_d, end_d = resolve_range(start, end, settings)
    subset = filter_by_range(store.all(), start_d, end_d, tz=settings.tzinfo)
    bucketer = bucket_half_hour if granularity is Granularity.HALF_HOUR else bucket_hourly
    buckets = bucketer(subset, tz=settings.tzinfo)
    return [WindowBucketRead.model_validate(b.__dict__) for b in buckets]


@router.get("/days", response_model=list[DayBucketRead])
def day_buckets(
    _: ReadUser,
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    start: StartDate = None,
    end: EndDate = None,
) -> list[DayBucketRead]:
    start_d, end_d = resolve_range(start, end, settings)
    subset = filter_by_range(store.all(), start_d, end_d, tz=settings.tzinfo)
    days = group_by_day(subset, tz=settings.tzinfo)
    return [DayBucketRead.model_validate(d.__dict__) for d in days]


@router.get("/summary", response_model=RangeSummary)
def range_summary(
    _: ReadUser,
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    metric: Metric = Metric.TEMPERATURE,
    start: StartDate = None,
    end: EndDate = None,
) -> RangeSummary:
    start_d, end_d = resolve_range(start, end, settings)
    try:
        table = build_range_summary(store.all(), metric, start_d, end_d, tz=settings.tzinfo)
    except NoData as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    return RangeSummary(
        metric=metric.value,
        granularity="hour" if is_same_day(start_d, end_d) else "day",
        start=start_d,
        end=end_d,
        headers=table.headers,
        rows=[
            SummaryRowRead(label=label, avg=avg, min=lo, max=hi)
            for label, avg, lo, hi in table.rows
        ],
    )


@router.get("/latest", response_model=LiveReadingRead)
def latest_reading(
    _: ReadUser,
    link: Annotated[LinkStatus, Depends(get_link_status)],
) -> LiveReadingRead:
    reading = link.latest()
    if reading is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No live reading yet.")
    return live_reading_read(reading)


@router.get("/status", response_model=LinkStatusRead)
def link_status(
    _: ReadUser,
    link: Annotated[LinkStatus, Depends(get_link_status)],
    store: Annotated[ReadingStore, Depends(get_reading_store)],
) -> LinkStatusRead:
    state = link.state()
    snapshot = store.snapshot()
    return LinkStatusRead(
        online=state.online,
        consecutive_failures=state.consecutive_failures,
        last_success_at=state.last_success_at,
        snapshot_generation=snapshot.generation,
        snapshot_size=len(snapshot.readings),
        snapshot_replaced_at=snapshot.replaced_at,
    )


@router.post("/refresh", response_model=HistoryRefreshResponse)
def refresh_history(
    _: WriteUser,
    service: Annotated[TelemetrySyncService, Depends(get_sync_service)],
) -> HistoryRefreshResponse:
    result = service.refresh_history()
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Telemetry provider unavailable",
        )
    return HistoryRefreshResponse.model_validate(result.__dict__)


def live_reading_read(reading: LiveReading) -> LiveReadingRead:
    return LiveReadingRead(
        timestamp=reading.timestamp,
        temperature=reading.temperature,
        humidity=reading.humidity,
        temp_level=reading.temp_level,
        hum_level=reading.hum_level,
        temp_trend=reading.temp_trend.value if reading.temp_trend else None,
        hum_trend=reading.hum_trend.value if reading.hum_trend else None,
    )
