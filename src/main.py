"""DocChat FastAPI application entry point.

The lifespan builds the provider graph once and parks it on ``app.state``;
route handlers pull what they need from there. Run with
``python -m src.main`` or point uvicorn at ``src.main:app``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    configure_exception_handlers,
)
from src.api.routes import APP_VERSION
from src.api.routes import router as api_router
from src.config import Settings, settings
from src.dependencies import build_components, initialize_components
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level logging
# ---------------------------------------------------------------------------

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
    app_env=settings.app_env,
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build providers and services on startup and publish them on app.state."""
    components = build_components(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await initialize_components(components)

    _logger.info(
        "app_startup",
        version=APP_VERSION,
        environment=settings.app_env,
        llm=components["llm"].get_provider_name(),
        providers=len(components["provider_list"]),
    )

    yield

    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None, *, lifespan=_lifespan) -> FastAPI:
    """Build and configure the FastAPI application.

    Tests pass ``lifespan=None`` and populate ``app.state`` themselves.
    """
    active_settings = app_settings or settings
    application = FastAPI(
        title="DocChat API",
        version=APP_VERSION,
        description=(
            "Upload PDF documentation, then ask questions answered strictly "
            "from its contents, with page-level sources."
        ),
        lifespan=lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=active_settings.get_cors_origins())
    configure_exception_handlers(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
