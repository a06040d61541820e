from __future__ import annotations

from datetime import date, datetime
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import OAuth2PasswordBearer, SecurityScopes

from rhmeter.core.config import Settings
from rhmeter.core.security import (
    ALL_SCOPES,
    READ_SCOPE,
    WRITE_SCOPE,
    InvalidToken,
    decode_access_token,
    verify_password,
)
from rhmeter.repositories.base import SensorRecordRepository
from rhmeter.repositories.influx import InfluxSensorRecordRepository
from rhmeter.schemas.auth import User
from rhmeter.services.ingest import SensorIngestService
from rhmeter.services.levels import LevelThresholds
from rhmeter.services.store import ReadingStore
from rhmeter.services.telemetry import LinkStatus, TelemetryClient, TelemetrySyncService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", scopes=ALL_SCOPES)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def level_thresholds(settings: Settings) -> LevelThresholds:
    return LevelThresholds(
        temp_normal_max=settings.temp_normal_max,
        temp_warning_max=settings.temp_warning_max,
        hum_dry_limit=settings.hum_dry_limit,
        hum_wet_limit=settings.hum_wet_limit,
    )


def get_level_thresholds(
    settings: Annotated[Settings, Depends(get_settings)],
) -> LevelThresholds:
    return level_thresholds(settings)


def get_record_repository(
    request: Request, settings: Annotated[Settings, Depends(get_settings)]
) -> SensorRecordRepository:
    return InfluxSensorRecordRepository(
        client=request.app.state.influx_client,
        org=settings.influx_org,
        bucket=settings.influx_bucket,
        measurement=settings.influx_measurement,
    )


def get_ingest_service(
    repo: Annotated[SensorRecordRepository, Depends(get_record_repository)],
    thresholds: Annotated[LevelThresholds, Depends(get_level_thresholds)],
) -> SensorIngestService:
    return SensorIngestService(repo, thresholds)


def get_reading_store(request: Request) -> ReadingStore:
    return request.app.state.reading_store


def get_link_status(request: Request) -> LinkStatus:
    return request.app.state.link_status


def get_telemetry_client(request: Request) -> TelemetryClient:
    return request.app.state.telemetry_client


def get_sync_service(
    client: Annotated[TelemetryClient, Depends(get_telemetry_client)],
    store: Annotated[ReadingStore, Depends(get_reading_store)],
    link: Annotated[LinkStatus, Depends(get_link_status)],
    thresholds: Annotated[LevelThresholds, Depends(get_level_thresholds)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TelemetrySyncService:
    return TelemetrySyncService(
        client=client,
        store=store,
        link=link,
        thresholds=thresholds,
        history_days=settings.history_days,
        history_limit=settings.history_limit,
    )


def authenticate_user(*, username: str, password: str, settings: Settings) -> User | None:
    if username != settings.admin_username:
        return None
    if not verify_password(password, settings.admin_password_hash):
        return None
    return User(username=username, scopes=list(ALL_SCOPES))


def get_current_user(
    security_scopes: SecurityScopes,
    token: Annotated[str, Depends(oauth2_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    authenticate_value = "Bearer"
    if security_scopes.scopes:
        authenticate_value = f'Bearer scope="{security_scopes.scope_str}"'

    try:
        subject, scopes = decode_access_token(token, settings)
    except InvalidToken as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": authenticate_value},
        ) from e

    user = User(username=subject, scopes=scopes)
    for scope in security_scopes.scopes:
        if not user.can(scope):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
                headers={"WWW-Authenticate": authenticate_value},
            )

    return user


CurrentUser = Annotated[User, Security(get_current_user)]

ReadUser = Annotated[User, Security(get_current_user, scopes=[READ_SCOPE])]
WriteUser = Annotated[User, Security(get_current_user, scopes=[WRITE_SCOPE])]


def local_today(settings: Settings) -> date:
    return datetime.now(tz=settings.tzinfo).date()


def resolve_range(
    start: date | None, end: date | None, settings: Settings
) -> tuple[date, date]:
    today = local_today(settings)
    start = start or end or today
    end = end or start
    return start, end
