"""
FastAPI application factory for the ConfigMap state backend.

Uses lifespan handler for startup/shutdown of the Kubernetes clients.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from configmap_backend import __version__
from configmap_backend.config import Settings
from configmap_backend.context import BackendContext, init_context
from configmap_backend.logging_config import configure_logging, get_logger

from .health import router as health_router
from .state import StateEndpoint

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    settings: Settings = app.state.settings

    # Startup
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting ConfigMap state backend", version=__version__)

    if getattr(app.state, "backend", None) is None:
        app.state.backend = init_context(settings)

    yield

    # Shutdown
    logger.info("Shutting down ConfigMap state backend")
    context: BackendContext | None = app.state.backend
    if context is not None:
        await context.close()
        app.state.backend = None


def create_app(
    settings: Settings | None = None,
    context: BackendContext | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    A pre-built `context` skips Kubernetes client construction at startup.
    """
    if settings is None:
        settings = context.settings if context is not None else Settings()

    app = FastAPI(
        title="Terraform ConfigMap Backend",
        description="Terraform http state backend storing state in Kubernetes ConfigMaps",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.backend = context

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Ensure every request has a request ID for logging correlation."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        structlog.contextvars.unbind_contextvars("request_id")

        return response

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Health endpoints
    app.include_router(health_router)

    # State endpoint: every other path and every method
    app.router.add_route("/{path:path}", StateEndpoint(), include_in_schema=False)

    return app
