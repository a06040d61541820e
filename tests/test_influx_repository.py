from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from rhmeter.api import deps
from rhmeter.models.reading import SensorRecord
from rhmeter.repositories.influx import InfluxSensorRecordRepository, InfluxUnavailable


class FakeWriteApi:
    def __init__(self) -> None:
        self.writes: list[dict] = []

    def write(self, *, bucket: str, org: str, record) -> None:
        self.writes.append({"bucket": bucket, "org": org, "line": record.to_line_protocol()})


class FakeInfluxClient:
    """Mirrors InfluxDBClient.ping(), which reports failures as False instead of raising."""

    def __init__(self, *, healthy: bool = True) -> None:
        self.healthy = healthy
        self.write_api_obj = FakeWriteApi()

    def ping(self) -> bool:
        return self.healthy

    def write_api(self, write_options=None) -> FakeWriteApi:
        return self.write_api_obj


def _repo(client: FakeInfluxClient) -> InfluxSensorRecordRepository:
    return InfluxSensorRecordRepository(
        client=client, org="test", bucket="sensors", measurement="sensor_data"
    )


def test_ping_raises_when_server_unreachable() -> None:
    _repo(FakeInfluxClient(healthy=True)).ping()

    with pytest.raises(InfluxUnavailable):
        _repo(FakeInfluxClient(healthy=False)).ping()


def test_health_reports_unreachable_influx(client: TestClient) -> None:
    influx = FakeInfluxClient(healthy=False)
    client.app.dependency_overrides[deps.get_record_repository] = lambda: _repo(influx)

    resp = client.get("/health")
    assert resp.status_code == 503
    assert resp.json()["detail"] == "InfluxDB unavailable"

    influx.healthy = True
    assert client.get("/health").status_code == 200


def test_write_record_tags_levels() -> None:
    influx = FakeInfluxClient()
    _repo(influx).write_record(
        SensorRecord(
            temperature=30.5,
            humidity=75.0,
            temp_level="warning",
            hum_level="warning",
            timestamp=datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
        )
    )

    (write,) = influx.write_api_obj.writes
    assert write["bucket"] == "sensors"
    assert write["line"].startswith("sensor_data,hum_level=warning,temp_level=warning ")
    assert "temperature=30.5" in write["line"]
    assert "humidity=75" in write["line"]
