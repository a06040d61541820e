from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from rhmeter.api.deps import level_thresholds
from rhmeter.api.router import api_router, relay_router
from rhmeter.clients.thingsboard import ThingsBoardClient
from rhmeter.core.config import Settings, load_settings
from rhmeter.core.logging import configure_logging
from rhmeter.repositories.influx import create_influx_client
from rhmeter.services.keepalive import KeepAlivePinger
from rhmeter.services.store import ReadingStore
from rhmeter.services.telemetry import LinkStatus, TelemetrySyncService
from rhmeter.web.router import ui_router

logger = logging.getLogger(__name__)


def _start_loop(
    name: str, interval_seconds: float, tick: Callable[[], object], stop_event: threading.Event
) -> threading.Thread:
    def _loop() -> None:
        while not stop_event.is_set():
            try:
                tick()
            except Exception:
                logger.exception("%s tick failed", name)
            stop_event.wait(interval_seconds)

    thread = threading.Thread(target=_loop, name=name, daemon=True)
    thread.start()
    return thread


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = threading.Event()
        threads: list[threading.Thread] = []
        pinger: KeepAlivePinger | None = None

        app.state.settings = settings
        app.state.influx_client = create_influx_client(settings)
        app.state.telemetry_client = ThingsBoardClient(
            base_url=str(settings.thingsboard_url),
            device_id=settings.thingsboard_device_id,
            username=settings.thingsboard_username,
            password=settings.thingsboard_password,
            timeout_seconds=settings.thingsboard_timeout_seconds,
        )

        if settings.background_refresh_enabled:
            sync = TelemetrySyncService(
                client=app.state.telemetry_client,
                store=app.state.reading_store,
                link=app.state.link_status,
                thresholds=level_thresholds(settings),
                history_days=settings.history_days,
                history_limit=settings.history_limit,
            )
            # Independent timers; the snapshot swap is the only shared write.
            threads.append(
                _start_loop(
                    "telemetry-live-refresh",
                    settings.live_refresh_interval_seconds,
                    sync.refresh_live,
                    stop_event,
                )
            )
            threads.append(
                _start_loop(
                    "telemetry-history-refresh",
                    settings.history_refresh_interval_seconds,
                    sync.refresh_history,
                    stop_event,
                )
            )

        if settings.keepalive_url is not None:
            pinger = KeepAlivePinger(url=str(settings.keepalive_url))
            threads.append(
                _start_loop(
                    "keepalive-ping", settings.keepalive_interval_seconds, pinger.ping, stop_event
                )
            )

        logger.info("rh-meter started (%d background tasks)", len(threads))
        yield
        stop_event.set()
        for thread in threads:
            if thread.is_alive():
                thread.join(timeout=2.0)
        if pinger is not None:
            pinger.close()
        app.state.telemetry_client.close()
        app.state.influx_client.close()

    docs_enabled = settings.docs_enabled and not settings.is_production
    app = FastAPI(
        title="rh-meter",
        version="0.1.0",
        debug=settings.debug,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.reading_store = ReadingStore()
    app.state.link_status = LinkStatus(failure_threshold=settings.offline_failure_threshold)

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age_seconds,
        same_site="lax",
        https_only=settings.is_production,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    if settings.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts)

    @app.middleware("http")
    async def security_headers(request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if settings.is_production:
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response

    @app.get("/", tags=["meta"])
    def root():
        return {"name": "rh-meter", "status": "ok"}

    app.include_router(relay_router)
    app.include_router(api_router)
    app.include_router(ui_router)

    static_dir = Path(__file__).resolve().parent / "web" / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    return app
