from __future__ import annotations

import logging
from datetime import datetime, timezone

from rhmeter.models.reading import SensorRecord
from rhmeter.repositories.base import SensorRecordRepository
from rhmeter.schemas.readings import SensorPayload
from rhmeter.services.levels import LevelThresholds

logger = logging.getLogger(__name__)


class SensorIngestService:
    def __init__(
        self, repo: SensorRecordRepository, thresholds: LevelThresholds | None = None
    ) -> None:
        self._repo = repo
        self._thresholds = thresholds or LevelThresholds()

    def save(self, payload: SensorPayload) -> SensorRecord:
        record = SensorRecord(
            temperature=payload.temperature,
            humidity=payload.humidity,
            temp_level=payload.temp_level or self._thresholds.temp_level(payload.temperature),
            hum_level=payload.hum_level or self._thresholds.hum_level(payload.humidity),
            timestamp=payload.timestamp or datetime.now(tz=timezone.utc),
        )
        self._repo.write_record(record)
        logger.info(
            "Saved reading temperature=%.1f humidity=%.1f at %s",
            record.temperature,
            record.humidity,
            record.timestamp.isoformat(),
        )
        return record
