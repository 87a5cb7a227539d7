# ==============================================================================
# MAIN APPLICATION - FastAPI Entry Point
# ==============================================================================
# Application factory with lifespan events and health endpoints
# ==============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from saas_data.core.exceptions import AppException
from saas_data.core.logging import setup_logging
from saas_data.core.settings import DatabaseTarget, settings
from saas_data.database.connection_manager import ConnectionManager
from saas_data.database.migrations.executor import MigrationExecutor
from saas_data.schemas.base import HealthResponse

logger = logging.getLogger(__name__)


# ==============================================================================
# LIFESPAN MANAGEMENT
# ==============================================================================

def build_lifespan(connections: ConnectionManager):
    """
    Lifespan bound to one connection manager.

    - Startup: open every database handle (a failure aborts startup),
      then apply pending migrations when MIGRATIONS_AUTO_RUN is set
    - Shutdown: close every handle
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app_settings = connections.settings
        setup_logging(app_settings.LOG_LEVEL, app_settings.LOG_FORMAT)
        logger.info(f"Starting {app_settings.APP_NAME} v{app_settings.APP_VERSION}")
        logger.info(f"Environment: {app_settings.ENVIRONMENT}")

        await connections.initialize()

        if app_settings.MIGRATIONS_AUTO_RUN:
            executor = MigrationExecutor(connections)
            for target in DatabaseTarget:
                result = await executor.run_migrations(target)
                logger.info(f"Applied {result.count} migrations on {target.value}")

        yield

        logger.info("Shutting down application...")
        await connections.shutdown()
        logger.info("Application shutdown complete")

    return lifespan


# ==============================================================================
# APPLICATION FACTORY
# ==============================================================================

def create_app(connections: Optional[ConnectionManager] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        connections: Connection manager to serve (a new one by default)

    Returns:
        Configured FastAPI application instance
    """
    connections = connections or ConnectionManager()
    app_settings = connections.settings

    app = FastAPI(
        title=app_settings.API_TITLE,
        description=app_settings.API_DESCRIPTION,
        version=app_settings.APP_VERSION,
        debug=app_settings.DEBUG,
        lifespan=build_lifespan(connections),
        docs_url="/docs" if app_settings.DEBUG else None,
        redoc_url="/redoc" if app_settings.DEBUG else None,
        openapi_url="/openapi.json" if app_settings.DEBUG else None,
    )
    app.state.connections = connections

    register_exception_handlers(app)
    register_health_endpoints(app)

    return app


# ==============================================================================
# EXCEPTION HANDLERS
# ==============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request,
        exc: AppException,
    ) -> JSONResponse:
        """Handle application exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception(f"Unexpected error: {exc}")

        detail = str(exc) if app.debug else "An unexpected error occurred"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": detail,
                }
            },
        )


# ==============================================================================
# HEALTH ENDPOINTS
# ==============================================================================

def register_health_endpoints(app: FastAPI) -> None:
    """Register health check endpoints."""

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="Check connectivity of every database target.",
    )
    async def health_check(request: Request) -> HealthResponse:
        """Application health check."""
        connections: ConnectionManager = request.app.state.connections
        health = await connections.get_all_health()

        return HealthResponse(
            status="healthy" if all(health.values()) else "degraded",
            version=connections.settings.APP_VERSION,
            databases={
                target: "connected" if healthy else "disconnected"
                for target, healthy in health.items()
            },
        )

    @app.get(
        "/",
        tags=["Health"],
        summary="Root endpoint",
        description="Service name and version.",
    )
    async def root(request: Request) -> dict:
        """Root endpoint with API info."""
        app_settings = request.app.state.connections.settings
        return {
            "name": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "health": "/health",
        }


# Create application instance
app = create_app()


# ==============================================================================
# DEVELOPMENT RUNNER
# ==============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "saas_data.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
