"""
Application factory for creating FastAPI app instances.

This module provides functions for creating and configuring the FastAPI application
with all necessary middleware, routers, and dependencies.
"""

from contextlib import asynccontextmanager
from typing import Optional

from domain.services.field_layout import FieldLayout
from domain.services.lifecycle_rules import LifecycleTiming
from fastapi import FastAPI
from infrastructure.database.connection import async_session_maker, init_db
from infrastructure.scheduler import BackgroundScheduler
from services import CatalogService, DatabaseInventoryGateway, GardenService, LifecycleService

from core import get_logger, get_settings

logger = get_logger("AppFactory")


def build_services(settings, session_factory) -> dict:
    """
    Wire the garden services for one application instance.

    Returns:
        Dict with garden_service, lifecycle_service, background_scheduler
    """
    layout = FieldLayout.from_settings(settings)
    timing = LifecycleTiming.from_settings(settings)
    catalog = CatalogService.from_settings(settings)
    gateway = DatabaseInventoryGateway(session_factory)

    lifecycle_service = LifecycleService(
        session_factory=session_factory,
        catalog=catalog,
        inventory=gateway,
        layout=layout,
        timing=timing,
    )
    garden_service = GardenService(
        session_factory=session_factory,
        catalog=catalog,
        inventory=gateway,
        currency=gateway,
        layout=layout,
        timing=timing,
    )
    background_scheduler = BackgroundScheduler(
        lifecycle_service=lifecycle_service,
        interval_seconds=settings.sweep_interval_seconds,
    )
    return {
        "garden_service": garden_service,
        "lifecycle_service": lifecycle_service,
        "background_scheduler": background_scheduler,
        "inventory_gateway": gateway,
    }


def create_app(session_factory=None, bind=None, start_scheduler: Optional[bool] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        session_factory: Session factory for all services (defaults to the app database)
        bind: Engine used to create the schema (defaults to the app engine)
        start_scheduler: Override settings.enable_scheduler

    Returns:
        Configured FastAPI application instance
    """
    from fastapi.middleware.cors import CORSMiddleware
    from routers import garden
    from slowapi import Limiter, _rate_limit_exceeded_handler
    from slowapi.errors import RateLimitExceeded
    from slowapi.util import get_remote_address

    settings = get_settings()
    session_factory = session_factory or async_session_maker
    run_scheduler = settings.enable_scheduler if start_scheduler is None else start_scheduler

    # Create lifespan context manager
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for application startup and shutdown."""
        # Startup
        logger.info("Application startup...")

        # Initialize database
        await init_db(bind)

        # Create singleton instances and store them in app state for dependency injection
        for name, service in build_services(settings, session_factory).items():
            setattr(app.state, name, service)

        layout = app.state.garden_service.layout
        logger.info(f"Garden grid {layout.rows}x{layout.columns}, {len(layout.pond_fields)} pond fields")

        # Start background scheduler
        if run_scheduler:
            app.state.background_scheduler.start()
        else:
            logger.info("Background scheduler disabled (ENABLE_SCHEDULER=false)")

        logger.info("Application startup complete")

        yield

        # Shutdown
        logger.info("Application shutdown...")
        app.state.background_scheduler.stop()
        logger.info("Application shutdown complete")

    # Initialize rate limiter
    limiter = Limiter(key_func=get_remote_address)

    # Create app with lifespan
    app = FastAPI(title="Garden API", lifespan=lifespan)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS middleware
    allowed_origins = settings.get_cors_origins()
    logger.info(f"CORS allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(garden.router, prefix="/garden", tags=["Garden"])

    return app
