from __future__ import annotations

from datetime import date
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import RedirectResponse

from rhmeter.api.deps import (
    authenticate_user,
    get_link_status,
    get_reading_store,
    get_settings,
    local_today,
    resolve_range,
)
from rhmeter.core.config import Settings
from rhmeter.models.reading import Metric
from rhmeter.schemas.auth import User
from rhmeter.services.bucketing import bucket_half_hour, group_by_day, stats
from rhmeter.services.export import day_table_rows
from rhmeter.services.range_query import filter_by_date, filter_by_range, is_same_day
from rhmeter.services.store import ReadingStore
from rhmeter.services.telemetry import LinkStatus
from rhmeter.web.deps import (
    HOME_PATH,
    LOGIN_PATH,
    SESSION_USER_KEY,
    csrf_protect,
    ensure_csrf_token,
    require_session_user,
    rotate_csrf_token,
    safe_next,
)
from rhmeter.web.templates import templates

router = APIRouter()


def redirect(
    url: str,
    *,
    params: dict[str, str] | None = None,
    message: str | None = None,
    error: str | None = None,
) -> RedirectResponse:
    query: dict[str, str] = dict(params or {})
    if message:
        query["message"] = message
    if error:
        query["error"] = error
    if query:
        url = f"{url}?{urlencode(query)}"
    return RedirectResponse(url, status_code=303)


def _login_page(
    request: Request, *, next_url: str, error: str | None = None, status_code: int = 200
):
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "request": request,
            "title": "Login",
            "csrf_token": ensure_csrf_token(request),
            "next": next_url,
            "error": error,
        },
        status_code=status_code,
    )


@router.get("/", include_in_schema=False)
def ui_index(request: Request):
    if request.session.get(SESSION_USER_KEY):
        return redirect(HOME_PATH)
    return redirect(LOGIN_PATH)


@router.get("/login", include_in_schema=False)
def login_page(
    request: Request,
    next_url: Annotated[str | None, Query(alias="next", max_length=512)] = None,
):
    return _login_page(request, next_url=safe_next(next_url))


@router.post("/login", include_in_schema=False, dependencies=[Depends(csrf_protect)])
def login_submit(
    request: Request,
    username: Annotated[str, Form(min_length=1, max_length=64)],
    password: Annotated[str, Form(min_length=1, max_length=256)],
    settings: Annotated[Settings, Depends(get_settings)],
    next_url: Annotated[str | None, Form(alias="next", max_length=512)] = None,
):
    target = safe_next(next_url)
    user = authenticate_user(username=username, password=password, settings=settings)
    if not user:
        return _login_page(
            request, next_url=target, error="Invalid username or password", status_code=401
        )

    request.session[SESSION_USER_KEY] = user.model_dump()
    rotate_csrf_token(request)
    return redirect(target)


@router.get("/logout", include_in_schema=False)
def logout(request: Request):
    request.session.clear()
    return redirect(LOGIN_PATH)


@router.get("/dashboard", include_in_schema=False)
def dashboard(
    request: Request,
    user: Annotated[User, Depends(require_session_user)],
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    link: Annotated[LinkStatus, Depends(get_link_status)],
    settings: Annotated[Settings, Depends(get_settings)],
    message: Annotated[str | None, Query(max_length=200)] = None,
    flash_error: Annotated[str | None, Query(max_length=200, alias="error")] = None,
):
    tz = settings.tzinfo
    today = local_today(settings)
    snapshot = store.snapshot()
    today_rows = filter_by_date(snapshot.readings, today, tz=tz)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "request": request,
            "title": "Dashboard",
            "user": user,
            "today": today,
            "link": link.state(),
            "snapshot": snapshot,
            "temp_stats": stats(today_rows, Metric.TEMPERATURE),
            "hum_stats": stats(today_rows, Metric.HUMIDITY),
            "buckets": bucket_half_hour(today_rows, tz=tz),
            "message": message,
            "error": flash_error,
        },
    )


@router.get("/metrics/{metric}", include_in_schema=False)
def metric_detail(
    request: Request,
    metric: Metric,
    user: Annotated[User, Depends(require_session_user)],
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    start: Annotated[date | None, Query()] = None,
    end: Annotated[date | None, Query()] = None,
    flash_error: Annotated[str | None, Query(max_length=200, alias="error")] = None,
):
    tz = settings.tzinfo
    start_d, end_d = resolve_range(start, end, settings)
    subset = filter_by_range(store.all(), start_d, end_d, tz=tz)
    same_day = is_same_day(start_d, end_d)

    error = flash_error
    if not subset and not error:
        error = "No data in selected range."

    return templates.TemplateResponse(
        request,
        "metric.html",
        {
            "request": request,
            "title": metric.title,
            "user": user,
            "metric": metric,
            "start": start_d,
            "end": end_d,
            "same_day": same_day,
            "stats": stats(subset, metric),
            "buckets": bucket_half_hour(subset, tz=tz) if same_day else [],
            "day_rows": [] if same_day else day_table_rows(group_by_day(subset, tz=tz), metric),
            "error": error,
        },
    )

