from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from rhmeter.clients.thingsboard import TelemetryAuthError
from rhmeter.models.reading import LiveReading
from rhmeter.services.levels import HUM_TREND_DELTA, TEMP_TREND_DELTA, LevelThresholds, trend
from rhmeter.services.store import ReadingStore, readings_from_timeseries

logger = logging.getLogger(__name__)


class TelemetryClient(Protocol):
    def reset_token(self) -> None: ...

    def fetch_latest(self) -> dict[str, list[dict[str, Any]]]: ...

    def fetch_history(
        self, *, start: datetime, stop: datetime, limit: int
    ) -> dict[str, list[dict[str, Any]]]: ...


@dataclass(frozen=True)
class HistoryRefreshResult:
    ok: bool
    count: int
    generation: int
    error: str | None = None


@dataclass(frozen=True)
class LinkState:
    online: bool
    consecutive_failures: int
    latest: LiveReading | None
    last_success_at: datetime | None


class LinkStatus:
    """Online/offline indicator plus the most recent live reading."""

    def __init__(self, *, failure_threshold: int = 3) -> None:
        self._failure_threshold = max(int(failure_threshold), 1)
        self._lock = threading.Lock()
        self._online = True
        self._failures = 0
        self._latest: LiveReading | None = None
        self._last_success_at: datetime | None = None

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    def record_success(self, reading: LiveReading | None, *, now: datetime) -> None:
        with self._lock:
            self._failures = 0
            self._online = True
            self._last_success_at = now
            if reading is not None:
                self._latest = reading

    def record_failure(self) -> bool:
        """Count a failure; returns True when the threshold has been reached."""
        with self._lock:
            self._failures += 1
            if self._failures >= self._failure_threshold:
                self._online = False
                return True
            return False

    def latest(self) -> LiveReading | None:
        with self._lock:
            return self._latest

    def state(self) -> LinkState:
        with self._lock:
            return LinkState(
                online=self._online,
                consecutive_failures=self._failures,
                latest=self._latest,
                last_success_at=self._last_success_at,
            )


class TelemetrySyncService:
    def __init__(
        self,
        *,
        client: TelemetryClient,
        store: ReadingStore,
        link: LinkStatus,
        thresholds: LevelThresholds | None = None,
        history_days: int = 30,
        history_limit: int = 50_000,
    ) -> None:
        self._client = client
        self._store = store
        self._link = link
        self._thresholds = thresholds or LevelThresholds()
        self._history = timedelta(days=history_days)
        self._history_limit = history_limit

    def refresh_history(self, *, now: datetime | None = None) -> HistoryRefreshResult:
        """Fetch the full history window and swap it in as the new snapshot.

        On failure the previous snapshot stays in place.
        """
        now = now or datetime.now(tz=timezone.utc)
        try:
            payload = self._client.fetch_history(
                start=now - self._history, stop=now, limit=self._history_limit
            )
        except Exception as e:  # noqa: BLE001 - next tick retries
            logger.warning("History refresh failed: %s", e)
            snapshot = self._store.snapshot()
            return HistoryRefreshResult(
                ok=False,
                count=len(snapshot.readings),
                generation=snapshot.generation,
                error=str(e),
            )

        snapshot = self._store.replace_all(readings_from_timeseries(payload))
        logger.debug(
            "Snapshot %d installed with %d readings", snapshot.generation, len(snapshot.readings)
        )
        return HistoryRefreshResult(
            ok=True, count=len(snapshot.readings), generation=snapshot.generation
        )

    def refresh_live(self, *, now: datetime | None = None) -> LiveReading | None:
        """Fetch the latest instantaneous reading and update the link status.

        Returns None on failure or when the device has not reported both values.
        """
        now = now or datetime.now(tz=timezone.utc)
        try:
            payload = self._client.fetch_latest()
        except TelemetryAuthError as e:
            logger.warning("Live refresh rejected: %s", e)
            self._on_failure()
            return None
        except Exception as e:  # noqa: BLE001 - tolerated up to the threshold
            logger.debug("Live refresh failed: %s", e)
            self._on_failure()
            return None

        reading = self._live_reading(payload, now=now)
        self._link.record_success(reading, now=now)
        return reading

    def _on_failure(self) -> None:
        if self._link.record_failure():
            logger.warning(
                "Telemetry offline after %d consecutive failures; forcing re-login",
                self._link.failure_threshold,
            )
            self._client.reset_token()

    def _live_reading(self, payload: dict[str, Any], *, now: datetime) -> LiveReading | None:
        temp = _first_value(payload.get("temperature"))
        hum = _first_value(payload.get("humidity"))
        if temp is None or hum is None:
            return None

        previous = self._link.latest()
        ts = _first_ts(payload.get("temperature")) or now
        return LiveReading(
            timestamp=ts,
            temperature=temp,
            humidity=hum,
            temp_level=self._thresholds.temp_level(temp),
            hum_level=self._thresholds.hum_level(hum),
            temp_trend=trend(
                temp, previous.temperature if previous else None, delta=TEMP_TREND_DELTA
            ),
            hum_trend=trend(hum, previous.humidity if previous else None, delta=HUM_TREND_DELTA),
        )


def _first_value(series: Any) -> float | None:
    if not isinstance(series, list) or not series or not isinstance(series[0], dict):
        return None
    try:
        return float(series[0].get("value"))
    except (TypeError, ValueError):
        return None


def _first_ts(series: Any) -> datetime | None:
    if not isinstance(series, list) or not series or not isinstance(series[0], dict):
        return None
    try:
        return datetime.fromtimestamp(int(series[0].get("ts")) / 1000, tz=timezone.utc)
    except (TypeError, ValueError):
        return None
