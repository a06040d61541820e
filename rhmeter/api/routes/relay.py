from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse

from rhmeter.api.deps import get_ingest_service, get_record_repository
from rhmeter.repositories.base import SensorRecordRepository
from rhmeter.schemas.readings import SensorPayload
from rhmeter.services.ingest import SensorIngestService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/save-data", response_class=PlainTextResponse, tags=["relay"])
def save_data(
    payload: SensorPayload,
    service: Annotated[SensorIngestService, Depends(get_ingest_service)],
) -> PlainTextResponse:
    try:
        service.save(payload)
    except Exception:  # noqa: BLE001 - report storage failures as 500
        logger.exception("Save failed")
        return PlainTextResponse("Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return PlainTextResponse("Saved", status_code=status.HTTP_200_OK)


@router.get("/health", tags=["meta"])
def health(
    repo: Annotated[SensorRecordRepository, Depends(get_record_repository)],
) -> dict[str, str]:
    try:
        repo.ping()
    except Exception as e:  # noqa: BLE001 - expose as 503 without leaking internals
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="InfluxDB unavailable",
        ) from e
    return {"status": "ok"}
