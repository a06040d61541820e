from __future__ import annotations

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from rhmeter.api.deps import get_reading_store, get_settings, resolve_range
from rhmeter.api.routes.exports import overview_xlsx, readings_csv, summary_xlsx
from rhmeter.core.config import Settings
from rhmeter.models.reading import Metric
from rhmeter.schemas.auth import User
from rhmeter.services.export import ExportError, NoData
from rhmeter.services.store import ReadingStore
from rhmeter.web.deps import HOME_PATH, require_session_user
from rhmeter.web.routes.pages import redirect

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exports")


def _failed(back: str, e: ExportError, params: dict[str, str] | None = None):
    logger.error("Excel export failed: %s", e)
    return redirect(back, params=params, error=f"Excel export failed: {e}"[:200])


@router.get("/readings.csv")
def download_csv(
    _: Annotated[User, Depends(require_session_user)],
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    try:
        return readings_csv(store, settings)
    except NoData as e:
        return redirect(HOME_PATH, error=e.message)


@router.get("/overview.xlsx")
def download_overview(
    _: Annotated[User, Depends(require_session_user)],
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    try:
        return overview_xlsx(store, settings)
    except NoData as e:
        return redirect(HOME_PATH, error=e.message)
    except ExportError as e:
        return _failed(HOME_PATH, e)


@router.get("/{metric}.xlsx")
def download_summary(
    metric: Metric,
    _: Annotated[User, Depends(require_session_user)],
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    start: Annotated[date | None, Query()] = None,
    end: Annotated[date | None, Query()] = None,
):
    start_d, end_d = resolve_range(start, end, settings)
    back = f"/ui/metrics/{metric.value}"
    params = {"start": start_d.isoformat(), "end": end_d.isoformat()}
    try:
        return summary_xlsx(store, settings, metric=metric, start=start_d, end=end_d)
    except NoData as e:
        return redirect(back, params=params, error=e.message)
    except ExportError as e:
        return _failed(back, e, params)
