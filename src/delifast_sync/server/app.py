"""FastAPI application setup and configuration."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from delifast_sync.config.settings import settings
from delifast_sync.core.exceptions import (
    AuthFailed,
    CredentialsMissing,
    DelifastError,
    PartnerApiError,
    SettingsMissing,
    ShipmentNotFound,
)
from delifast_sync.core.logger import setup_logger
from delifast_sync.db import get_engine, get_session_factory, init_db
from delifast_sync.server import dependencies, job_routes, routes

logger = setup_logger(__name__)

# Global variables for resource management
_engine = None

# Exception -> HTTP status for manual actions
ERROR_STATUS_CODES = (
    (ShipmentNotFound, 404),
    (SettingsMissing, 400),
    (CredentialsMissing, 400),
    (AuthFailed, 401),
    (PartnerApiError, 502),
)


def _init_sentry() -> None:
    """Initialize GlitchTip error monitoring (Sentry-compatible)."""
    if not settings.glitchtip_dsn:
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=settings.glitchtip_dsn,
            environment=settings.environment,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                LoggingIntegration(
                    level=None,  # Capture all log levels as breadcrumbs
                    event_level=logging.ERROR,  # Send ERROR logs as events
                ),
            ],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.0,
            send_default_pii=False,
        )
        logger.info("GlitchTip error monitoring initialized")
    except Exception as e:
        logger.error(f"Failed to initialize GlitchTip: {e}")


async def delifast_error_handler(request: Request, exc: DelifastError) -> JSONResponse:
    """Map lifecycle errors to HTTP responses."""
    status_code = 500
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")

    content = {"success": False, "error": str(exc)}
    if isinstance(exc, PartnerApiError) and exc.status_code:
        content["partner_status"] = exc.status_code
    return JSONResponse(status_code=status_code, content=content)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Delifast Sync",
        version="1.0.0",
        description="Sends Shopify orders to Delifast and keeps shipment status in sync",
    )

    _init_sentry()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(routes.router)
    app.include_router(job_routes.router)
    app.add_exception_handler(DelifastError, delifast_error_handler)

    app.state.scheduler = None

    @app.on_event("startup")
    async def startup():
        """Initialize database, services and (optionally) the scheduler."""
        global _engine

        try:
            logger.info("=" * 60)
            logger.info("Starting Delifast Sync...")
            logger.info("=" * 60)

            logger.info(f"Initializing database: {settings.database_url}")
            _engine = get_engine(settings.database_url)
            await init_db(_engine)
            services = dependencies.build_services(get_session_factory(_engine))
            dependencies.set_services(services)
            logger.info("✓ Database and services initialized")

            if settings.scheduler_enabled:
                from delifast_sync.services.reconciliation_scheduler import (
                    ReconciliationScheduler,
                )

                scheduler = ReconciliationScheduler(services.reconciliation_service)
                scheduler.start()
                app.state.scheduler = scheduler
                logger.info("✓ Reconciliation scheduler started")
            else:
                logger.info("Scheduler disabled, jobs run via /api/jobs/* endpoints")

            logger.info("Delifast Sync started successfully!")
        except Exception as e:
            logger.error(f"Failed to start: {e}", exc_info=True)
            raise

    @app.on_event("shutdown")
    async def shutdown():
        """
        Gracefully shut down all resources.

        Pending webhook tasks are awaited before the HTTP client and the
        database connections are closed.
        """
        logger.info("Starting graceful shutdown...")

        if app.state.scheduler is not None:
            app.state.scheduler.stop()

        try:
            await dependencies.wait_for_pending_tasks()
        except Exception as e:
            logger.error(f"Error while waiting for tasks to complete: {e}", exc_info=True)

        services = dependencies.current_services()
        if services is not None:
            await services.close()
            dependencies.set_services(None)

        if _engine is not None:
            logger.info("Closing database connections...")
            await _engine.dispose()

        logger.info("Graceful shutdown completed")

    return app
