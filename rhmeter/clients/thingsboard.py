from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any

import httpx

logger = logging.getLogger(__name__)

TELEMETRY_KEYS = "temperature,humidity"


class TelemetryError(Exception):
    pass


class TelemetryAuthError(TelemetryError):
    pass


def _epoch_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


class ThingsBoardClient:
    """Read-only access to one device's telemetry on a ThingsBoard host.

    Logs in lazily and caches the JWT. Any 401 clears the cached token so the
    next call logs in again.
    """

    def __init__(
        self,
        *,
        base_url: str,
        device_id: str,
        username: str,
        password: str,
        timeout_seconds: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._device_id = device_id
        self._username = username.strip()
        self._password = password.strip()
        self._lock = threading.Lock()
        self._token: str | None = None
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @property
    def has_token(self) -> bool:
        return self._token is not None

    def close(self) -> None:
        self._client.close()

    def reset_token(self) -> None:
        with self._lock:
            self._token = None

    def login(self) -> str:
        resp = self._client.post(
            "/api/auth/login",
            json={"username": self._username, "password": self._password},
        )
        if resp.status_code == 401:
            self.reset_token()
            raise TelemetryAuthError("ThingsBoard login rejected")
        resp.raise_for_status()
        token = resp.json().get("token")
        if not isinstance(token, str) or not token:
            raise TelemetryError("ThingsBoard login response contained no token")
        with self._lock:
            self._token = token
        logger.info("Logged in to ThingsBoard as %s", self._username)
        return token

    def fetch_latest(self) -> dict[str, list[dict[str, Any]]]:
        return self._get_timeseries({"keys": TELEMETRY_KEYS})

    def fetch_history(
        self, *, start: datetime, stop: datetime, limit: int
    ) -> dict[str, list[dict[str, Any]]]:
        return self._get_timeseries(
            {
                "keys": TELEMETRY_KEYS,
                "startTs": _epoch_ms(start),
                "endTs": _epoch_ms(stop),
                "limit": int(limit),
            }
        )

    def _get_timeseries(self, params: dict[str, Any]) -> dict[str, list[dict[str, Any]]]:
        token = self._token or self.login()
        resp = self._client.get(
            f"/api/plugins/telemetry/DEVICE/{self._device_id}/values/timeseries",
            params=params,
            headers={"X-Authorization": f"Bearer {token}"},
        )
        if resp.status_code == 401:
            self.reset_token()
            raise TelemetryAuthError("ThingsBoard token rejected")
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, dict):
            raise TelemetryError("Unexpected ThingsBoard telemetry response shape")
        return payload
