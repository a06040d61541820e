from __future__ import annotations

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from rhmeter.api.deps import ReadUser, get_reading_store, get_settings, local_today, resolve_range
from rhmeter.core.config import Settings
from rhmeter.models.reading import Metric
from rhmeter.services.export import (
    CSV_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    ExportError,
    NoData,
    build_hourly_overview,
    build_range_summary,
    csv_filename,
    readings_to_csv,
    summary_to_xlsx,
)
from rhmeter.services.store import ReadingStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exports")


def attachment(content: bytes | str, *, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-store",
        },
    )


def _no_data(e: NoData) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


def _export_failed(e: ExportError) -> HTTPException:
    logger.error("Excel export failed: %s", e)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Excel export failed: {e}",
    )


def readings_csv(store: ReadingStore, settings: Settings) -> Response:
    content = readings_to_csv(store.all())
    return attachment(
        content, media_type=CSV_MEDIA_TYPE, filename=csv_filename(local_today(settings))
    )


def summary_xlsx(
    store: ReadingStore, settings: Settings, *, metric: Metric, start: date, end: date
) -> Response:
    table = build_range_summary(store.all(), metric, start, end, tz=settings.tzinfo)
    return attachment(summary_to_xlsx(table), media_type=XLSX_MEDIA_TYPE, filename=table.filename)


def overview_xlsx(store: ReadingStore, settings: Settings) -> Response:
    table = build_hourly_overview(store.all(), today=local_today(settings), tz=settings.tzinfo)
    return attachment(summary_to_xlsx(table), media_type=XLSX_MEDIA_TYPE, filename=table.filename)


@router.get("/readings.csv")
def export_readings_csv(
    _: ReadUser,
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    try:
        return readings_csv(store, settings)
    except NoData as e:
        raise _no_data(e) from e


@router.get("/summary.xlsx")
def export_summary_xlsx(
    _: ReadUser,
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    metric: Metric = Metric.TEMPERATURE,
    start: Annotated[date | None, Query()] = None,
    end: Annotated[date | None, Query()] = None,
) -> Response:
    start_d, end_d = resolve_range(start, end, settings)
    try:
        return summary_xlsx(store, settings, metric=metric, start=start_d, end=end_d)
    except NoData as e:
        raise _no_data(e) from e
    except ExportError as e:
        raise _export_failed(e) from e


@router.get("/overview.xlsx")
def export_overview_xlsx(
    _: ReadUser,
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    try:
        return overview_xlsx(store, settings)
    except NoData as e:
        raise _no_data(e) from e
    except ExportError as e:
        raise _export_failed(e) from e
