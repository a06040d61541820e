from __future__ import annotations

from datetime import timezone as dt_timezone
from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ADMIN_PASSWORD_HASH = (
    "$2b$12$sdOU8uwfeIt/6CaZUIM6ke71zg30wHn0r3QC4TDA3xHYwQxTVEEXi"
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APP_",
        case_sensitive=False,
    )

    env: str = Field(default="development")
    debug: bool = Field(default=False)
    docs_enabled: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    secret_key: str = Field(min_length=32)
    algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=30, ge=1, le=60 * 24 * 30)

    admin_username: str = Field(default="admin", min_length=3, max_length=64)
    admin_password_hash: str = Field(default=DEFAULT_ADMIN_PASSWORD_HASH, min_length=10)

    cors_origins: list[str] = Field(default_factory=list)
    trusted_hosts: list[str] = Field(default_factory=lambda: ["localhost", "127.0.0.1"])

    session_cookie: str = Field(default="rhmeter_session", min_length=1, max_length=64)
    session_max_age_seconds: int = Field(default=60 * 60 * 8, ge=60, le=60 * 60 * 24 * 30)

    # Local calendar used for day/hour windows.
    timezone: str = Field(default="UTC", min_length=1, max_length=64)

    thingsboard_url: AnyHttpUrl = Field(default="https://thingsboard.cloud")
    thingsboard_device_id: str = Field(min_length=1, max_length=64)
    thingsboard_username: str = Field(min_length=1, max_length=256)
    thingsboard_password: str = Field(min_length=1, max_length=256)
    thingsboard_timeout_seconds: float = Field(default=10.0, ge=1.0, le=60.0)

    history_days: int = Field(default=30, ge=1, le=365)
    history_limit: int = Field(default=50_000, ge=1, le=500_000)
    history_refresh_interval_seconds: float = Field(default=10.0, ge=0.25, le=3600.0)
    live_refresh_interval_seconds: float = Field(default=2.0, ge=0.25, le=3600.0)
    background_refresh_enabled: bool = Field(default=True)
    offline_failure_threshold: int = Field(default=3, ge=1, le=100)

    temp_normal_max: float = Field(default=27.0)
    temp_warning_max: float = Field(default=35.0)
    hum_dry_limit: float = Field(default=40.0)
    hum_wet_limit: float = Field(default=70.0)

    influx_url: AnyHttpUrl = Field(default="http://influxdb:8086")
    influx_token: str = Field(min_length=10)
    influx_org: str = Field(min_length=1)
    influx_bucket: str = Field(min_length=1)
    influx_measurement: str = Field(default="sensor_data", min_length=1, max_length=64)
    influx_timeout_ms: int = Field(default=10_000, ge=1000, le=120_000)

    keepalive_url: AnyHttpUrl | None = Field(default=None)
    keepalive_interval_seconds: float = Field(default=600.0, ge=10.0, le=24 * 3600.0)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, v: str) -> str:
        if v.upper() == "UTC":
            return "UTC"
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {v!r}") from e
        return v

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def tzinfo(self) -> tzinfo:
        if self.timezone == "UTC":
            return dt_timezone.utc
        return ZoneInfo(self.timezone)


def load_settings() -> Settings:
    settings = Settings()
    if not settings.cors_origins:
        settings.cors_origins = ["http://localhost:3000", "http://localhost:8000"]
    return settings
