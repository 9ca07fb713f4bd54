import logging
from contextlib import asynccontextmanager
from typing import Optional

from aqm_core.application.telemetry_service import TelemetryService
from aqm_core.config.environments import Settings, get_settings
from fastapi import FastAPI

from aqm_server.adapters.api.routes import router

log = logging.getLogger(__name__)


def build_service(settings: Settings) -> TelemetryService:
    uow_factory = None
    if settings.DATABASE_URL:
        from aqm_server.adapters.db.session import create_session_factory
        from aqm_server.adapters.db.uow import SqlAlchemyUoW

        session_factory = create_session_factory(settings.DATABASE_URL)

        def uow_factory():
            return SqlAlchemyUoW(session_factory=session_factory)

    else:
        log.info("DATABASE_URL not set, running with in-memory state only")
    return TelemetryService.from_settings(settings, uow_factory=uow_factory)


def create_app(service: Optional[TelemetryService] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.service = service or build_service(settings)
        ingest_client = None
        if settings.MQTT_ENABLED:
            from aqm_server.adapters.mqtt.server import MqttIngestClient

            ingest_client = MqttIngestClient(app.state.service, settings)
            ingest_client.start()
        try:
            yield
        finally:
            if ingest_client is not None:
                ingest_client.stop()

    app = FastAPI(title="Air Quality Monitor", lifespan=lifespan)
    app.include_router(router)
    return app


app = create_app()
