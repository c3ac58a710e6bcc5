"""
Ticket SLA Engine - Main Application
=====================================

SLA tracking and escalation service for support tickets.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, evaluator
- Infrastructure: Database, config watcher, event publisher, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ticket_sla.config import settings
from ticket_sla.core import ApplicationException
from ticket_sla.infrastructure.database import (
    close_database,
    create_tables,
    get_session_maker,
    init_database,
)
from ticket_sla.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from ticket_sla.shared.infrastructure.logging import get_logger, setup_logging
from ticket_sla.sla.application import PauseWindowService, SLAEngine, SLAReportingService
from ticket_sla.sla.infrastructure import (
    HttpEventPublisher,
    SLAConfigManager,
    SLAScheduler,
    SQLAlchemyUnitOfWork,
)
from ticket_sla.sla.interfaces import sla_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load SLA configuration and start watching it
    4. Wire the SLA engine and services
    5. Start the sweep scheduler

    SHUTDOWN:
    1. Stop the sweep scheduler
    2. Stop the config watcher
    3. Close the event publisher and database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting SLA engine", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    # Development convenience - production schemas come from migrations
    await create_tables()

    config_manager = SLAConfigManager()
    config_manager.load(settings.sla_config_path)
    config_manager.start_watching()

    publisher = HttpEventPublisher()
    session_maker = get_session_maker()

    def uow_factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_maker)

    engine = SLAEngine(
        uow_factory=uow_factory,
        config_provider=config_manager,
        publisher=publisher,
        max_retries=settings.sla_max_evaluation_retries,
        sweep_concurrency=settings.sla_sweep_concurrency,
        sweep_batch_size=settings.sla_sweep_batch_size,
    )

    app.state.settings = settings
    app.state.sla_config_provider = config_manager
    app.state.sla_engine = engine
    app.state.pause_window_service = PauseWindowService(uow_factory)
    app.state.reporting_service = SLAReportingService(uow_factory)

    scheduler = None
    if settings.sla_sweep_interval_seconds > 0:
        scheduler = SLAScheduler(interval_seconds=settings.sla_sweep_interval_seconds)
        await scheduler.start(engine.sweep)
    else:
        logger.info("SLA sweep scheduler disabled")
    app.state.sla_scheduler = scheduler

    logger.info("SLA engine started")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down SLA engine")

    if scheduler:
        await scheduler.stop()
    config_manager.stop_watching()
    await publisher.close()
    await close_database()

    logger.info("SLA engine shutdown complete")


app = FastAPI(
    title="Ticket SLA Engine API",
    description="""
    ## SLA tracking and escalation for support tickets

    **Lifecycle events** (`POST /sla/events`) start, re-bind and stop
    response/resolution clocks. Running clocks are re-evaluated by a
    periodic sweep; status changes and escalation thresholds are published
    to the messaging webhook.

    Elapsed time honours business hours (per rule) and excludes
    organization-wide pause windows (`/sla/pause-windows`).
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(sla_router)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports SLA configuration and scheduler state.
    """
    scheduler = getattr(request.app.state, "sla_scheduler", None)
    config_provider = getattr(request.app.state, "sla_config_provider", None)

    checks = {
        "sla_config": "loaded" if config_provider is not None else "not_loaded",
        "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
    }
    if config_provider is not None:
        checks["sla_rules"] = len(config_provider.get_config().rules)

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "sla": {
                "prefix": "/sla",
                "endpoints": [
                    "POST /sla/events - Apply ticket lifecycle events",
                    "POST /sla/sweep - Evaluate all running clocks",
                    "GET /sla/tickets/{id}/clocks - Get ticket clocks",
                    "GET /sla/tickets/{id}/history - Get ticket SLA history",
                    "GET /sla/dashboard - Get status counts",
                    "/sla/pause-windows - Manage pause windows"
                ]
            }
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticket_sla.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
