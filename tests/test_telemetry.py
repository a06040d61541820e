from __future__ import annotations

from datetime import datetime, timezone

import httpx

from rhmeter.clients.thingsboard import TelemetryAuthError
from rhmeter.models.reading import Trend
from rhmeter.services.levels import LevelThresholds, trend
from rhmeter.services.store import ReadingStore
from rhmeter.services.telemetry import LinkStatus, TelemetrySyncService
from tests.fakes import FakeTelemetryClient, reading, timeseries

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _latest(temp: str, hum: str, ts: int = 1704110400000) -> dict:
    return {"temperature": [{"ts": ts, "value": temp}], "humidity": [{"ts": ts, "value": hum}]}


def _service(
    client: FakeTelemetryClient, **kwargs
) -> tuple[TelemetrySyncService, ReadingStore, LinkStatus]:
    store = ReadingStore()
    link = LinkStatus(failure_threshold=3)
    return TelemetrySyncService(client=client, store=store, link=link, **kwargs), store, link


def test_temperature_levels() -> None:
    t = LevelThresholds()
    assert t.temp_level(27.0) == "normal"
    assert t.temp_level(27.1) == "warning"
    assert t.temp_level(35.0) == "warning"
    assert t.temp_level(35.1) == "critical"


def test_humidity_levels() -> None:
    t = LevelThresholds()
    assert t.hum_level(39.9) == "critical"
    assert t.hum_level(40.0) == "normal"
    assert t.hum_level(70.0) == "normal"
    assert t.hum_level(70.1) == "warning"


def test_trend() -> None:
    assert trend(20.0, None, delta=0.2) is None
    assert trend(20.3, 20.0, delta=0.2) is Trend.RISING
    assert trend(19.7, 20.0, delta=0.2) is Trend.FALLING
    assert trend(20.1, 20.0, delta=0.2) is Trend.STABLE


def test_refresh_live_records_reading_and_trends() -> None:
    client = FakeTelemetryClient()
    client.latest_payloads = [_latest("24.0", "55.0"), _latest("25.0", "54.8")]
    service, _, link = _service(client)

    first = service.refresh_live(now=NOW)
    assert first is not None
    assert first.timestamp == NOW
    assert (first.temp_level, first.hum_level) == ("normal", "normal")
    assert first.temp_trend is None

    second = service.refresh_live(now=NOW)
    assert second.temp_trend is Trend.RISING
    assert second.hum_trend is Trend.STABLE
    assert link.latest() == second
    assert link.state().online
    assert link.state().last_success_at == NOW


def test_two_failures_stay_online_third_goes_offline() -> None:
    client = FakeTelemetryClient()
    client.latest_payloads = [
        httpx.ConnectError("boom"),
        httpx.ConnectError("boom"),
        httpx.ConnectError("boom"),
    ]
    service, _, link = _service(client)

    assert service.refresh_live(now=NOW) is None
    assert service.refresh_live(now=NOW) is None
    assert link.state().online
    assert client.reset_calls == 0

    assert service.refresh_live(now=NOW) is None
    state = link.state()
    assert not state.online
    assert state.consecutive_failures == 3
    assert client.reset_calls == 1


def test_auth_failures_count_toward_offline() -> None:
    client = FakeTelemetryClient()
    client.latest_payloads = [TelemetryAuthError("rejected")] * 3
    service, _, link = _service(client)

    for _ in range(3):
        service.refresh_live(now=NOW)

    assert not link.state().online
    assert client.reset_calls == 1


def test_success_resets_failure_counter() -> None:
    client = FakeTelemetryClient()
    client.latest_payloads = [
        httpx.ConnectError("boom"),
        httpx.ConnectError("boom"),
        _latest("20.0", "50.0"),
        httpx.ConnectError("boom"),
    ]
    service, _, link = _service(client)

    for _ in range(4):
        service.refresh_live(now=NOW)

    state = link.state()
    assert state.online
    assert state.consecutive_failures == 1


def test_offline_recovers_on_next_success() -> None:
    client = FakeTelemetryClient()
    client.latest_payloads = [httpx.ConnectError("boom")] * 3 + [_latest("20.0", "50.0")]
    service, _, link = _service(client)

    for _ in range(3):
        service.refresh_live(now=NOW)
    assert not link.state().online

    service.refresh_live(now=NOW)
    assert link.state().online


def test_partial_live_payload_keeps_previous_reading() -> None:
    client = FakeTelemetryClient()
    client.latest_payloads = [_latest("20.0", "50.0"), {"temperature": [{"ts": 1, "value": "21"}]}]
    service, _, link = _service(client)

    first = service.refresh_live(now=NOW)
    assert service.refresh_live(now=NOW) is None
    assert link.latest() == first
    assert link.state().online


def test_refresh_live_uses_configured_thresholds() -> None:
    client = FakeTelemetryClient()
    client.latest_payloads = [_latest("26.0", "50.0")]
    service, _, _ = _service(client, thresholds=LevelThresholds(temp_normal_max=25.0))

    live = service.refresh_live(now=NOW)
    assert live.temp_level == "warning"


def test_refresh_history_installs_snapshot() -> None:
    rows = [reading("2024-01-01T10:00:00", 20.0, 50.0), reading("2024-01-01T10:01:00", 20.5, 51.0)]
    client = FakeTelemetryClient()
    client.history_payloads = [timeseries(rows)]
    service, store, _ = _service(client, history_days=30, history_limit=500)

    result = service.refresh_history(now=NOW)

    assert result.ok
    assert result.count == 2
    assert result.generation == 1
    assert list(store.all()) == rows
    call = client.history_calls[0]
    assert call["stop"] == NOW
    assert (call["stop"] - call["start"]).days == 30
    assert call["limit"] == 500


def test_failed_history_refresh_keeps_previous_snapshot() -> None:
    rows = [reading("2024-01-01T10:00:00", 20.0, 50.0)]
    client = FakeTelemetryClient()
    client.history_payloads = [timeseries(rows), httpx.ReadTimeout("slow")]
    service, store, link = _service(client)

    service.refresh_history(now=NOW)
    result = service.refresh_history(now=NOW)

    assert not result.ok
    assert result.error
    assert result.generation == 1
    assert list(store.all()) == rows
    assert link.state().consecutive_failures == 0
