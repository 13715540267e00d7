"""
Host application wiring for request telemetry.

Builds a FastAPI app whose requests feed a reporter, with the reporter's
dispatcher tied to the app lifespan.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.config import TelemetryConfig, get_config
from shared.logging import configure_logging, get_logger
from shared.errors import ConfigurationError, DeliveryError, MissingAttributeError, TelemetryException
from .middleware import install_request_telemetry
from .reporter import Reporter


class TelemetryService:
    """FastAPI application reporting its own request metrics."""

    ERROR_STATUS = {
        ConfigurationError: 409,
        MissingAttributeError: 422,
        DeliveryError: 502,
    }

    def __init__(self, config: Optional[TelemetryConfig] = None, reporter: Optional[Reporter] = None):
        self.config = config or get_config()
        configure_logging("telemetry", self.config.log_level)
        self.logger = get_logger("telemetry.service")

        self.reporter = reporter or Reporter.with_default_metrics(self.config)
        self.app = self._create_app()
        install_request_telemetry(self.app, self.reporter)
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self.reporter.start()
            try:
                yield
            finally:
                await self.reporter.stop(flush=True)

        return FastAPI(
            title=f"{self.config.app_name} telemetry",
            version=self.config.agent_version,
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
            lifespan=lifespan
        )

    def _setup_routes(self):
        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            dispatcher = self.reporter.dispatcher.get_stats()
            return {
                "service": self.config.app_name,
                "status": "ok" if dispatcher["running"] else "stopped",
                "version": self.config.agent_version
            }

        @self.app.get("/telemetry/stats")
        async def telemetry_stats():
            """Collector and dispatcher statistics."""
            return {
                "collector": self.reporter.collector.get_collection_stats(),
                "dispatcher": self.reporter.dispatcher.get_stats(),
                "retained_snapshots": {
                    metric.kind.value: getattr(metric, "retained_snapshots", None)
                    for metric in self.reporter.metrics
                },
                "timestamp": datetime.now().isoformat()
            }

        @self.app.post("/telemetry/flush")
        async def flush_metrics():
            """Run one export cycle now instead of waiting for the next tick."""
            if not await self.reporter.dispatcher.run_cycle():
                raise DeliveryError("Metrics were not acknowledged, data retained for next cycle")
            return {"status": "delivered", "dispatcher": self.reporter.dispatcher.get_stats()}

        @self.app.exception_handler(TelemetryException)
        async def telemetry_exception_handler(request: Request, exc: TelemetryException):
            """Handle TelemetryException."""
            self.logger.error(
                "Telemetry error",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            return JSONResponse(
                status_code=self.ERROR_STATUS.get(type(exc), 500),
                content=exc.to_response().model_dump()
            )


def create_app(config: Optional[TelemetryConfig] = None) -> FastAPI:
    """Create the telemetry host application."""
    return TelemetryService(config).app


if __name__ == "__main__":
    import uvicorn

    service = TelemetryService()
    uvicorn.run(service.app, host="0.0.0.0", port=8012, log_level=service.config.log_level.lower())
