"""
FastAPI application for the glucose exporter.

This module serves LibreLinkUp glucose readings in the Prometheus text
exposition format, alongside the exporter's own process metrics.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest

from . import __version__
from .client import ClientConfig, LibreLinkClient
from .collector import GlucoseCollector
from .config import Settings, get_settings
from .logging_utils import setup_logging
from .models import HealthResponse

logger = logging.getLogger(__name__)

SERVICE_NAME = "glucose-exporter"


def build_collector(settings: Settings) -> GlucoseCollector:
    """Create the client and the collector that owns it."""
    client = LibreLinkClient(ClientConfig.from_settings(settings))
    return GlucoseCollector(client, scrape_timeout=settings.scrape_timeout_seconds)


def create_app(collector: Optional[GlucoseCollector] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        collector: Collector to serve; built from Settings when omitted

    Returns:
        Configured FastAPI application
    """
    if collector is None:
        collector = build_collector(get_settings())

    glucose_registry = CollectorRegistry()
    glucose_registry.register(collector)

    # =========================================================================
    # Application Lifecycle
    # =========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup and shutdown."""
        logger.info("Glucose exporter starting up")
        yield
        collector.client.close()
        logger.info("Glucose exporter shutting down")

    app = FastAPI(
        title="Glucose Exporter",
        description="Exports LibreLinkUp CGM glucose readings as Prometheus metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.collector = collector
    app.state.glucose_registry = glucose_registry

    # =========================================================================
    # Middleware
    # =========================================================================

    @app.middleware("http")
    async def add_request_context(request: Request, call_next):
        """Add request ID and timing to all requests."""
        request_id = str(uuid.uuid4())[:8]
        start_time = datetime.now()

        request.state.request_id = request_id

        response = await call_next(request)

        duration_ms = (datetime.now() - start_time).total_seconds() * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            }
        )

        return response

    # =========================================================================
    # Endpoints
    # =========================================================================

    @app.get("/", response_model=HealthResponse)
    async def root():
        """
        Root endpoint - service information.

        Returns service name and status for quick verification.
        """
        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=__version__,
        )

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for container orchestration.

        Returns a simple status for liveness checks.
        """
        return {
            "status": "ok",
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/glucose")
    def glucose_metrics():
        """
        Glucose readings in the Prometheus text exposition format.

        Every request scrapes LibreLinkUp. Samples carry the time the
        reading was taken, not the scrape time. A failed scrape yields
        empty metric families rather than an error response.

        Declared sync so FastAPI runs the blocking scrape in its threadpool.
        """
        return Response(
            content=generate_latest(glucose_registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    @app.get("/metrics")
    def process_metrics():
        """Exporter process and LibreLinkUp client metrics."""
        return Response(
            content=generate_latest(REGISTRY),
            media_type=CONTENT_TYPE_LATEST,
        )

    return app


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    host, port = settings.bind_address()

    logger.info("Starting server", extra={"host": host, "port": port})
    uvicorn.run(create_app(build_collector(settings)), host=host, port=port, log_config=None)


if __name__ == "__main__":
    run()
