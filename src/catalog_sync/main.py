"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_sync import __version__
from catalog_sync.api.v1.router import api_router
from catalog_sync.config import get_settings
from catalog_sync.exceptions import (
    CatalogSyncError,
    FetchError,
    NotFoundError,
    PersistenceError,
    SyncAlreadyInProgressError,
    ValidationError,
)
from catalog_sync.infrastructure.database.connection import create_schema, dispose_engine
from catalog_sync.log_config import configure_logging
from catalog_sync.services.container import get_services

configure_logging(get_settings())

logger = structlog.get_logger()

ERROR_STATUS: list[tuple[type[CatalogSyncError], int]] = [
    (SyncAlreadyInProgressError, 409),
    (NotFoundError, 404),
    (ValidationError, 422),
    (FetchError, 502),
    (PersistenceError, 503),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting Catalog Sync Service",
        app_env=settings.app_env,
        debug=settings.debug,
        scheduler=settings.sync_scheduler,
    )

    await create_schema()
    services = get_services()
    await services.client.connect()

    if settings.sync_scheduler == "apscheduler":
        services.orchestrator.start_scheduled(
            settings.sync_cron_schedule, timezone=settings.sync_timezone
        )

    yield

    services.orchestrator.stop_scheduled()
    await services.client.close()
    await dispose_engine()
    logger.info("Shutting down Catalog Sync Service")


async def catalog_error_handler(request: Request, exc: CatalogSyncError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
        500,
    )
    log = logger.warning if status_code < 500 else logger.error
    log(
        "Request failed",
        path=request.url.path,
        method=request.method,
        status=status_code,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": exc.message},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Catalog Sync API",
        description="Local mirror of WooCommerce orders and the products they reference",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CatalogSyncError, catalog_error_handler)

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "catalog_sync.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        # The single-flight guard and scheduler are per process
        workers=1 if settings.debug or settings.sync_scheduler == "apscheduler" else settings.api_workers,
    )


if __name__ == "__main__":
    run()
