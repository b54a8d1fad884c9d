
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .errors import MeterApiError
from .pipeline import IngestionPipeline
from .publisher import MeterDataPublisher
from .repos.mongo_repo import MongoRepo
from .repos.redis_repo import RedisRepo
from .routes import devices, meter, nodes
from .udp_listener import UDPTelemetryListener
from .ws_manager import WSManager

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    mongo: Optional[MongoRepo] = None,
    cache: Optional[RedisRepo] = None,
) -> FastAPI:
    settings = settings or get_settings()

    # --- startup/shutdown
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        udp = app.state.udp
        if settings.udp_enabled:
            await udp.start()
        try:
            yield
        finally:
            await udp.stop()

    app = FastAPI(title="Wi-SUN E-Meter Telemetry Backend", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    # --- process-wide singletons, injected into routes through app.state
    ws_manager = WSManager()
    mongo = mongo or MongoRepo(settings.mongo_uri, settings.mongo_db)
    cache = cache or RedisRepo(settings.redis_url)
    pipeline = IngestionPipeline(mongo, MeterDataPublisher(ws_manager), cache=cache)
    udp = UDPTelemetryListener(pipeline, settings.udp_host, settings.udp_port)

    app.state.settings = settings
    app.state.ws_manager = ws_manager
    app.state.mongo = mongo
    app.state.cache = cache
    app.state.pipeline = pipeline
    app.state.udp = udp

    app.include_router(devices.router)
    app.include_router(nodes.router)
    app.include_router(meter.router)

    @app.exception_handler(MeterApiError)
    async def meter_api_error_handler(request: Request, exc: MeterApiError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.__cause__ or exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("%s %s failed", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "message": "Something went wrong!"})

    # --- REST APIs ---
    @app.get("/")
    def root():
        return {
            "message": "Wi-SUN E-meter Backend API",
            "version": "1.0.0",
            "endpoints": {
                "devices": "/api/devices",
                "nodes": "/api/nodes",
                "meter": "/api/meter",
                "health": "/api/health",
            },
        }

    @app.get("/api/health")
    def health():
        return {
            "success": True,
            "message": "Wi-SUN E-meter Backend is running",
            "timestamp": datetime.now(timezone.utc),
            "connections": ws_manager.count,
        }

    # --- WebSockets for live UI ---
    @app.websocket("/ws/meter")
    async def ws_meter(ws: WebSocket):
        await ws_manager.connect(ws)
        try:
            while True:
                # viewers only listen; incoming text keeps the socket alive
                await ws.receive_text()
        except WebSocketDisconnect:
            ws_manager.disconnect(ws)

    return app
