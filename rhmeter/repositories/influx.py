from __future__ import annotations

from datetime import timezone

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from rhmeter.core.config import Settings
from rhmeter.models.reading import SensorRecord


class InfluxUnavailable(Exception):
    pass


def create_influx_client(settings: Settings) -> InfluxDBClient:
    return InfluxDBClient(
        url=str(settings.influx_url),
        token=settings.influx_token,
        org=settings.influx_org,
        timeout=settings.influx_timeout_ms,
    )


class InfluxSensorRecordRepository:
    def __init__(
        self,
        *,
        client: InfluxDBClient,
        org: str,
        bucket: str,
        measurement: str,
    ) -> None:
        self._client = client
        self._org = org
        self._bucket = bucket
        self._measurement = measurement

    def ping(self) -> None:
        # The client swallows connection errors and reports them as False.
        if not self._client.ping():
            raise InfluxUnavailable("InfluxDB ping failed")

    def write_record(self, record: SensorRecord) -> None:
        ts = record.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)

        point = (
            Point(self._measurement)
            .tag("temp_level", record.temp_level)
            .tag("hum_level", record.hum_level)
            .field("temperature", float(record.temperature))
            .field("humidity", float(record.humidity))
            .time(ts, WritePrecision.NS)
        )

        write_api = self._client.write_api(write_options=SYNCHRONOUS)
        write_api.write(bucket=self._bucket, org=self._org, record=point)
