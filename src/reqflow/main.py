"""Application factory for the reqflow FastAPI app."""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from reqflow.core.errors import AppError, app_error_handler, validation_error_handler
from reqflow.core.logging import setup_logging
from reqflow.core.redis_client import close_redis_connection
from reqflow.core.settings import get_settings
from reqflow.db.base import dispose_engine
from reqflow.routers import actions as actions_router
from reqflow.routers import health as health_router
from reqflow.routers import inputs as inputs_router
from reqflow.routers import notifications as notifications_router
from reqflow.routers import projects as projects_router
from reqflow.routers import webhooks as webhooks_router
from reqflow.services.processing_client import get_processing_client

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info(f"reqflow starting (environment={settings.environment})")
    yield
    await get_processing_client().aclose()
    if settings.dispatch_lease_enabled:
        await close_redis_connection()
    await dispose_engine()
    logger.info("reqflow stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)
    app = FastAPI(
        title="reqflow API",
        version="0.1.0",
        description="Staged requirements, BRD and blueprint document pipeline",
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(health_router.router)
    app.include_router(health_router.router, prefix=settings.api_prefix)
    app.include_router(inputs_router.router, prefix=settings.api_prefix)
    app.include_router(projects_router.router, prefix=settings.api_prefix)
    app.include_router(actions_router.router, prefix=settings.api_prefix)
    app.include_router(webhooks_router.router, prefix=settings.api_prefix)
    app.include_router(notifications_router.router, prefix=settings.api_prefix)

    # Error handlers
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    return app


app = create_app()
