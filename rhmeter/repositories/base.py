from __future__ import annotations

from typing import Protocol

from rhmeter.models.reading import SensorRecord


class SensorRecordRepository(Protocol):
    def ping(self) -> None: ...

    def write_record(self, record: SensorRecord) -> None: ...
