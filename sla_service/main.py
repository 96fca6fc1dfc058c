"""
SLA Lifecycle Service - Main Application
=========================================

Tracks service requests against day-based SLAs.

Modules:
- SLA: request lifecycle, compliance evaluation and the daily recompute pass
- Alerts: escalation levels, e-mail notification and the daily digest
- Ingestion: idempotent bulk upload from spreadsheets

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, e-mail gateway, policy file, scheduler
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration
from sla_service.config import settings

# Infrastructure
from sla_service.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from sla_service.shared.infrastructure import (
    Clock,
    DailyJob,
    DailyTrigger,
    JobScheduler,
    OperatingClock,
)
from sla_service.sla.infrastructure import SQLAlchemySlaStore
from sla_service.alerts.infrastructure import AlertPolicyManager, HttpEmailNotifier

# Services
from sla_service.alerts.application import (
    AlertDigestService,
    AlertEngine,
    IAlertPolicyProvider,
    NotificationDispatcher,
)
from sla_service.sla.application import INotifier, SlaRecomputeService

# Module Routers
from sla_service.alerts.interfaces import router as alerts_router
from sla_service.ingestion.interfaces import router as ingestion_router
from sla_service.sla.interfaces import router as sla_router

# API plumbing
from sla_service.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    install_error_handling,
)

# Logging
from sla_service.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


# ========== Background Jobs ==========

def build_recompute_job(
    clock: Clock,
    notifier: INotifier,
    policy_provider: IAlertPolicyProvider
) -> DailyJob:
    """Daily SLA recompute over all open requests, in one session."""

    async def action(now: datetime, should_stop: Callable[[], bool]) -> bool:
        async with get_session_context() as session:
            store = SQLAlchemySlaStore(session)
            engine = AlertEngine(store, NotificationDispatcher(notifier), policy_provider, clock)
            summary = await SlaRecomputeService(store, clock, engine).run_daily_pass(now.date(), should_stop)
        return summary.completed

    trigger = DailyTrigger(
        settings.sla_recompute_time,
        timedelta(minutes=settings.scheduler_tolerance_minutes),
    )
    return DailyJob("sla_recompute", trigger, action, clock)


def build_digest_job(clock: Clock, notifier: INotifier) -> DailyJob:
    """Daily e-mail of open high and critical alerts; a missed window is skipped."""

    async def action(now: datetime, should_stop: Callable[[], bool]) -> bool:
        async with get_session_context() as session:
            digest = AlertDigestService(
                SQLAlchemySlaStore(session),
                NotificationDispatcher(notifier),
                settings.alert_digest_recipient,
            )
            return await digest.send_daily_digest(now.date())

    trigger = DailyTrigger(
        settings.alert_digest_time,
        timedelta(minutes=settings.scheduler_tolerance_minutes),
        catch_up=False,
    )
    return DailyJob("alert_digest", trigger, action, clock)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load the alert policy and watch its file
    4. Create the e-mail notifier and the operating clock
    5. Register and start the daily jobs

    SHUTDOWN:
    1. Stop the job scheduler (in-flight passes finish their current request)
    2. Stop the policy watcher
    3. Close the e-mail client
    4. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting SLA Lifecycle Service", extra={
        "version": settings.app_version,
        "environment": settings.environment,
        "timezone": settings.operating_timezone
    })

    logger.info("Initializing database")
    init_database()

    # Tables are created for development; the service still starts without a database
    app.state.database_ready = False
    try:
        await create_tables()
        app.state.database_ready = True
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Loading alert policy", extra={"path": str(settings.alert_policy_path)})
    policy_manager = AlertPolicyManager()
    policy_manager.load(settings.alert_policy_path)
    policy_manager.start_watching()

    notifier = HttpEmailNotifier(
        api_url=settings.email_api_url,
        api_key=settings.email_api_key,
        sender=settings.email_sender,
        timeout_seconds=settings.email_timeout_seconds,
    )
    if not notifier.is_configured:
        logger.warning("E-mail API not configured - alerts will be stored but not sent")

    clock = OperatingClock(settings.operating_timezone)

    # Shared collaborators for dependency injection
    app.state.settings = settings
    app.state.clock = clock
    app.state.notifier = notifier
    app.state.alert_policy = policy_manager

    scheduler = JobScheduler(poll_seconds=settings.scheduler_poll_seconds)
    scheduler.register(build_recompute_job(clock, notifier, policy_manager))
    if settings.alert_digest_enabled:
        scheduler.register(build_digest_job(clock, notifier))
    app.state.scheduler = scheduler

    if settings.scheduler_enabled:
        await scheduler.start()
    else:
        logger.info("Job scheduler disabled by configuration")

    logger.info("SLA Lifecycle Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down SLA Lifecycle Service")

    await scheduler.stop()
    policy_manager.stop_watching()
    await notifier.close()
    await close_database()

    logger.info("SLA Lifecycle Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="SLA Lifecycle Service API",
    description="""
    ## SLA Lifecycle and Alerting

    Day-based SLA tracking for service requests.

    ---

    ### SLA Requests

    - `POST /sla/requests` - Register a request
    - `GET /sla/requests` - List requests
    - `GET|PUT|DELETE /sla/requests/{id}` - Read, update, delete a request
    - `POST /sla/recompute` - Run the daily recompute pass now

    ### Alerts

    - `GET /alerts` - List alerts
    - `POST /alerts` - Raise an alert by hand
    - `PATCH /alerts/{id}/read` - Mark read
    - `DELETE /alerts/{id}` - Delete
    - `POST /alerts/{id}/send` - Send the e-mail now

    ### Bulk Ingestion

    - `POST /ingestion/requests` - Idempotent upload of spreadsheet rows

    ---

    ### Escalation (days remaining until the SLA limit)

    | Days remaining | Level |
    |----------------|-------|
    | overdue or <= 2 | CRITICO |
    | <= 5 | ALTO |
    | > 5 | MEDIO |

    Thresholds are read from `alert_policy.yaml` and reloaded on change.
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

# === Custom Middleware ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
install_error_handling(app)

# === Include Module Routers ===
app.include_router(sla_router)
app.include_router(alerts_router)
app.include_router(ingestion_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "scheduler": "running",
                        "email": "configured",
                        "jobs": {"sla_recompute": "2024-01-10"}
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports database availability at startup, scheduler state, e-mail
    configuration and the last completed run date of every daily job.
    """
    state = request.app.state
    scheduler = getattr(state, "scheduler", None)
    notifier = getattr(state, "notifier", None)
    database_ready = getattr(state, "database_ready", False)

    checks = {
        "database": "connected" if database_ready else "unavailable",
        "scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "email": "configured" if getattr(notifier, "is_configured", False) else "not_configured",
        "jobs": {
            name: job.last_run_date.isoformat() if job.last_run_date else None
            for name, job in (scheduler.jobs.items() if scheduler else [])
        },
    }

    return {
        "status": "healthy" if database_ready else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "SLA Lifecycle Service",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "sla": {"prefix": "/sla"},
            "alerts": {"prefix": "/alerts"},
            "ingestion": {"prefix": "/ingestion"},
        }
    }


# === Development Entry Point ===

def run() -> None:
    import uvicorn

    uvicorn.run(
        "sla_service.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
