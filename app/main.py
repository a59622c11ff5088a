"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.router import api_router
from app.config import Settings, get_settings
from app.container import Container
from app.core.exceptions import AppException
from app.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.middleware.logging import LoggingMiddleware, configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the dependency container on startup unless one was supplied to
    ``create_app``, and releases it on shutdown.
    """
    settings: Settings = app.state.settings
    owns_container = app.state.container is None

    if owns_container:
        app.state.container = Container.build(settings)

    logger.info("application_startup", environment=settings.environment)
    health = await app.state.container.check_health()
    for name, ok in health.items():
        if ok:
            logger.info("dependency_connected", dependency=name)
        else:
            logger.error("dependency_connection_failed", dependency=name)

    yield

    logger.info("application_shutdown")
    if owns_container:
        await app.state.container.close()
        app.state.container = None


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Application settings, loaded from the environment by default
        container: Pre-built dependency container; built in the lifespan if omitted

    Returns:
        Configured application
    """
    if settings is None:
        settings = container.settings if container else get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Asynchronous appointment fulfillment across per-country stores",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

    app.include_router(api_router, prefix=settings.api_v1_prefix)

    if settings.metrics_enabled:
        Instrumentator(
            should_group_status_codes=True,
            should_ignore_untemplated=False,
            should_instrument_requests_inprogress=True,
            excluded_handlers=["/docs", "/redoc", "/openapi.json"],
            inprogress_name="http_requests_inprogress",
            inprogress_labels=True,
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """
        Root endpoint.

        Returns:
            Welcome message
        """
        return {
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
        }

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
