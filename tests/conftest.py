from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient

from rhmeter.api import deps
from rhmeter.core.config import Settings
from rhmeter.core.security import get_password_hash
from rhmeter.factory import create_app
from rhmeter.models.reading import Reading
from rhmeter.services.store import ReadingStore
from tests.fakes import FakeSensorRecordRepository, FakeTelemetryClient, reading


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        env="test",
        debug=True,
        docs_enabled=False,
        secret_key="test_secret_key_must_be_32_chars_minimum",
        admin_username="admin",
        admin_password_hash=get_password_hash("password"),
        cors_origins=["http://localhost"],
        trusted_hosts=["testserver", "localhost"],
        timezone="UTC",
        thingsboard_url="https://tb.example.com",
        thingsboard_device_id="device-1",
        thingsboard_username="user@example.com",
        thingsboard_password="secret",
        thingsboard_timeout_seconds=1.0,
        background_refresh_enabled=False,
        influx_url="http://example.com:8086",
        influx_token="test-token-1234567890",
        influx_org="test",
        influx_bucket="test",
        influx_measurement="sensor_data",
        influx_timeout_ms=5000,
        keepalive_url=None,
    )


@pytest.fixture()
def fake_records() -> FakeSensorRecordRepository:
    return FakeSensorRecordRepository()


@pytest.fixture()
def fake_telemetry() -> FakeTelemetryClient:
    return FakeTelemetryClient()


@pytest.fixture()
def client(
    settings: Settings,
    fake_records: FakeSensorRecordRepository,
    fake_telemetry: FakeTelemetryClient,
) -> TestClient:
    app = create_app(settings)
    app.dependency_overrides[deps.get_record_repository] = lambda: fake_records
    app.dependency_overrides[deps.get_telemetry_client] = lambda: fake_telemetry
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def store(client: TestClient) -> ReadingStore:
    return client.app.state.reading_store


@pytest.fixture()
def token(client: TestClient) -> str:
    resp = client.post(
        "/api/v1/auth/token",
        data={"username": "admin", "password": "password"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"]


@pytest.fixture()
def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def two_days() -> list[Reading]:
    """Readings over 2024-01-01 and 2024-01-02 (UTC)."""
    return [
        reading("2024-01-01T10:00:00", 20.0, 50.0),
        reading("2024-01-01T10:20:00", 21.0, 52.0),
        reading("2024-01-01T10:40:00", 23.0, 56.0),
        reading("2024-01-01T14:00:00", 22.0, 60.0),
        reading("2024-01-02T08:15:00", 18.0, 45.0),
        reading("2024-01-02T09:45:00", 19.0, 47.0),
    ]


@pytest.fixture()
def jan1() -> date:
    return date(2024, 1, 1)
