"""FastAPI host wiring: tracking middleware, error logging and exporter lifecycle"""
import time
import traceback
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from config import Config
from app.tracking import Tracker
from metrics.exporter import OTLPExporter
from middleware.tracking import RequestTrackingMiddleware
from logging_config import get_logger


logger = get_logger(__name__)


class TelemetryServer:
    """FastAPI application instrumented with metrics export and log shipping.

    Business routers are attached with ``include_router``; they reach the
    tracking hooks through ``server.tracker`` (also on ``app.state.tracker``).
    """

    def __init__(self,
                 config: Config,
                 tracker: Optional[Tracker] = None,
                 exporter: Optional[OTLPExporter] = None):
        self.config = config
        self.tracker = tracker or Tracker.from_config(config)
        self.exporter = exporter or OTLPExporter(config, self.tracker.store)
        self.start_time = time.time()

        self.app = FastAPI(
            title="JWT Pizza Service",
            version=config.service_version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan
        )
        self.app.state.tracker = self.tracker

        self._setup_middleware()
        self._setup_exception_handlers()
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        self.start_time = time.time()
        self.tracker.shipper.start()
        await self.exporter.start()
        logger.info(
            "Telemetry started",
            service_name=self.config.service_name,
            export_interval=self.config.export_interval,
            event_type="server_startup"
        )
        try:
            yield
        finally:
            logger.info("Shutting down telemetry", event_type="server_shutdown")
            await self.exporter.shutdown()
            await self.tracker.shipper.shutdown()

    def _setup_middleware(self):
        if self.config.enable_request_tracking:
            self.app.add_middleware(RequestTrackingMiddleware, tracker=self.tracker)

    def _setup_exception_handlers(self):

        @self.app.exception_handler(Exception)
        async def unhandled_error(request: Request, exc: Exception):
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            status_code = getattr(exc, "status_code", 500)
            self.tracker.track_unhandled_error(status_code, str(exc), stack)
            logger.error(
                "Unhandled error",
                path=request.url.path,
                error=str(exc),
                error_type=type(exc).__name__,
                event_type="unhandled_error"
            )
            return JSONResponse(status_code=status_code, content={"message": str(exc), "stack": stack})

    def _setup_routes(self):

        @self.app.get('/health')
        def health_check():
            """Healthy while the last metrics push succeeded"""
            health_data = {
                "status": "healthy" if self.exporter.is_healthy() else "unhealthy",
                "exporter_running": self.exporter.is_running,
                "last_export_seconds_ago": round(time.time() - self.exporter.last_export_time, 1)
                if self.exporter.last_export_time else None,
            }
            if not self.exporter.is_healthy():
                raise HTTPException(status_code=503, detail=health_data)
            return health_data

        @self.app.get('/status')
        def get_status():
            """Export and shipping statistics"""
            exports = self.exporter.export_count
            failures = self.exporter.export_failures
            shipper = self.tracker.shipper
            return {
                "service": {
                    "name": self.config.service_name,
                    "version": self.config.service_version,
                    "uptime_seconds": round(time.time() - self.start_time, 1),
                },
                "metrics": {
                    "interval_seconds": self.config.export_interval,
                    "total_exports": exports,
                    "export_failures": failures,
                    "success_rate": round((exports - failures) / max(exports, 1) * 100, 1),
                    "active_users": self.tracker.store.active_users,
                },
                "logs": {
                    "sent": shipper.sent,
                    "failed": shipper.failed,
                    "dropped": shipper.dropped,
                    "in_flight": shipper.pending,
                },
            }

    def include_router(self, router: APIRouter, **kwargs) -> None:
        self.app.include_router(router, **kwargs)

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
