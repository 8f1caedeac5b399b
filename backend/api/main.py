"""
LiveMark API Main Application.

FastAPI application with error handling and watch lifecycle management.
Requires Python 3.11+.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from api.dependencies import get_registry, set_registry
from utils.config import get_settings
from utils.errors import InvalidPathError, ResourceExhaustedError, StaleReadError
from utils.logger import configure_logging, get_logger
from watcher.debouncer import Debouncer
from watcher.keepalive import KeepaliveTicker
from watcher.registry import WatchRegistry


# Initialize logging
configure_logging()
logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Creates the watch registry and keepalive ticker on startup and
    releases every OS watch on shutdown.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        root=settings.server.root,
        default_file=settings.server.default_file,
    )

    debouncer = Debouncer(
        delay_ms=settings.watcher.debounce_delay_ms,
        loop=asyncio.get_running_loop(),
    )
    registry = WatchRegistry(debouncer=debouncer)
    ticker = KeepaliveTicker(registry, interval_s=settings.watcher.keepalive_interval_s)
    set_registry(registry)
    ticker.start()

    try:
        yield
    finally:
        # Cleanup
        logger.info("shutting_down_application")
        await ticker.stop()
        registry.shutdown()
        set_registry(None)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()

    application = FastAPI(
        title=settings.app_name,
        description="Live-reloading local file viewer",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )

    @application.exception_handler(InvalidPathError)
    async def invalid_path_handler(request: Request, exc: InvalidPathError) -> JSONResponse:
        logger.warning("invalid_path", path=exc.raw_path, reason=exc.reason)
        return JSONResponse(
            status_code=403 if exc.forbidden else 404,
            content={"error": exc.reason, "path": exc.raw_path},
        )

    @application.exception_handler(StaleReadError)
    async def stale_read_handler(request: Request, exc: StaleReadError) -> PlainTextResponse:
        logger.warning("stale_read", path=exc.path, reason=exc.reason)
        return PlainTextResponse(str(exc), status_code=404)

    @application.exception_handler(ResourceExhaustedError)
    async def exhausted_handler(request: Request, exc: ResourceExhaustedError) -> JSONResponse:
        logger.error("watch_resources_exhausted", path=exc.path, reason=exc.reason)
        return JSONResponse(
            status_code=503,
            content={"error": "Cannot watch more files", "message": str(exc)},
        )

    # Global exception handler
    @application.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.is_development else "An unexpected error occurred",
            },
        )

    # Health check endpoint
    @application.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        registry = get_registry()
        return {
            "status": "healthy" if registry is not None else "starting",
            "version": settings.app_version,
            "watched_files": len(registry) if registry is not None else 0,
            "channels": len(registry.channels()) if registry is not None else 0,
        }

    # Import and include routers here to avoid circular imports
    from api.routes import events, files, viewer

    application.include_router(viewer.router, tags=["Viewer"])
    application.include_router(files.router, prefix="/api", tags=["Files"])
    application.include_router(events.router, prefix="/api", tags=["Events"])

    return application


# Create the application instance
app = create_app()
