"""Watcher console service main application."""

import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from .api.routes import router as api_router
from libs.common.config import ConsoleConfig
from libs.common.logging import configure_logging
from libs.common.metrics import create_metrics_collector
from libs.common.tracing import configure_tracing
from libs.gateway.client import RequestGateway
from libs.gateway.session import SessionRegistry
from libs.introspection.errors import BackendFailure, GatewayError, NotFound, SchemaMismatch

logger = structlog.get_logger("console_service")

SERVICE_NAME = "watcher-console"


def create_app(
    config: Optional[ConsoleConfig] = None,
    gateway: Optional[RequestGateway] = None
) -> FastAPI:
    """Build the console application.

    Parameters
    - config: Service configuration (read from the environment by default)
    - gateway: Pre-built gateway; the lifespan builds one from config if absent
    """
    config = config or ConsoleConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        # Startup
        configure_logging(SERVICE_NAME, config.watcher_log_level, config.watcher_log_format, env=config.watcher_env)

        if config.watcher_tracing_enabled:
            tracer = configure_tracing(
                config.watcher_otel_service_name,
                config.watcher_otel_exporter,
                sample_rate=config.watcher_otel_sample_rate,
                environment=config.watcher_env
            )
            if tracer:
                logger.info("OpenTelemetry tracing enabled", exporter=config.watcher_otel_exporter)
            else:
                logger.warning("Tracing initialization failed")
        else:
            tracer = None
            logger.info("OpenTelemetry tracing disabled via configuration")
        app.state.tracer = tracer

        app.state.metrics_collector = create_metrics_collector(SERVICE_NAME)
        app.state.gateway = gateway or RequestGateway(config, metrics=app.state.metrics_collector)
        await app.state.gateway.connect()
        app.state.sessions = SessionRegistry(app.state.gateway, config, metrics=app.state.metrics_collector)

        logger.info(
            "Watcher console started",
            backend=config.watcher_backend_url,
            cache_backend=config.watcher_cache_backend,
            backend_persists_results=config.watcher_backend_persists_results
        )

        yield

        # Shutdown
        logger.info("Shutting down watcher console")
        await app.state.sessions.close_all()
        await app.state.gateway.close()
        logger.info("Watcher console shutdown complete")

    app = FastAPI(
        title="Watcher Console",
        description="Normalizing gateway in front of the model-introspection backend",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[config.watcher_session_header],
    )

    app.include_router(api_router, prefix="/api")

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "detail": str(exc), "id": exc.result_id}
        )

    @app.exception_handler(SchemaMismatch)
    async def schema_mismatch_handler(request: Request, exc: SchemaMismatch):
        logger.error("Backend response not understood", path=request.url.path, error=exc.message)
        return JSONResponse(
            status_code=502,
            content={"error": "schema_mismatch", "detail": f"unrecognized response schema: {exc.message}"}
        )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        error = "backend_failure" if isinstance(exc, BackendFailure) else "transport_failure"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": error, "detail": exc.message}
        )

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Collect metrics for HTTP requests, labelled by route template."""
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        # Result ids must not become label values.
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")

        if hasattr(request.app.state, "metrics_collector"):
            request.app.state.metrics_collector.record_http_request(
                method=request.method,
                endpoint=endpoint,
                status=response.status_code,
                duration=duration
            )

        response.headers["X-Process-Time"] = str(duration)
        return response

    @app.get("/health")
    async def health_check():
        """Liveness of the console itself (backend health is /api/health)."""
        return {"status": "healthy", "service": SERVICE_NAME, "sessions": len(app.state.sessions)}

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        if hasattr(app.state, "metrics_collector"):
            return Response(content=app.state.metrics_collector.get_metrics(), media_type="text/plain")
        return Response(content="# No metrics available\n", media_type="text/plain")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "version": "0.1.0",
            "status": "running",
            "endpoints": {
                "health": "/health",
                "metrics": "/metrics",
                "analyze": "/api/analyze",
                "results": "/api/results/{id}",
                "history": "/api/history",
                "backend_health": "/api/health",
                "session": "/api/session"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=ConsoleConfig().watcher_console_port,
        reload=True,
        log_level="info"
    )
