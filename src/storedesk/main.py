"""
StoreDesk - Main Application
============================

Ticket routing and SLA escalation service for retail store maintenance.

Modules:
- Routing: classify reported issues and assign the best available provider
- SLA: sweep active tickets and escalate SLA breaches
- Triage: LLM-backed issue classification

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, LLM, Slack, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from storedesk.config import settings
from storedesk.core import ApplicationException, ConfigurationException

# Infrastructure
from storedesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)

# SLA Module - External services
from storedesk.sla.infrastructure import (
    EscalationScheduler,
    SlackEscalationNotifier,
    load_sla_policy,
)
from storedesk.triage.infrastructure import build_classifier

# Module Routers
from storedesk.routing.interfaces import routing_router
from storedesk.sla.interfaces import build_escalation_monitor, sla_router, ticket_escalations_router

# Middleware
from storedesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)

# Logging
from storedesk.shared.infrastructure.logging import bind_correlation_id, get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load the SLA policy
    4. Build the issue classifier
    5. Start the escalation scheduler

    SHUTDOWN:
    1. Stop the escalation scheduler
    2. Close the Slack client
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting StoreDesk", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Development convenience; production schemas come from migrations
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Loading SLA policy")
    sla_policy = load_sla_policy(settings.sla_config_path)

    logger.info("Initializing classifier", extra={"llm_provider": settings.llm_provider})
    try:
        classifier = build_classifier()
    except ConfigurationException as e:
        logger.warning(f"Classifier not configured, using mock classifier: {e.message}")
        classifier = build_classifier("mock")

    notifier = SlackEscalationNotifier()

    app.state.sla_policy = sla_policy
    app.state.classifier = classifier
    app.state.escalation_notifier = notifier

    scheduler = None
    if settings.escalation_sweep_interval > 0:
        async def escalation_sweep_job():
            """Background escalation sweep; a failed run is retried next interval."""
            with bind_correlation_id(f"sweep-{uuid4()}"):
                try:
                    async with get_session_context() as session:
                        await build_escalation_monitor(session, sla_policy, notifier).run()
                except Exception as e:
                    logger.error("Escalation sweep failed", extra={"error": str(e)}, exc_info=True)

        scheduler = EscalationScheduler(interval_seconds=settings.escalation_sweep_interval)
        await scheduler.start(escalation_sweep_job)
    else:
        logger.info("Escalation scheduler disabled")

    app.state.escalation_scheduler = scheduler

    logger.info("StoreDesk started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down StoreDesk")

    if scheduler:
        await scheduler.stop()

    await notifier.close()
    await close_database()

    logger.info("StoreDesk shutdown complete")


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware, handlers and routers."""
    application = FastAPI(
        title="StoreDesk API",
        description="""
    ## Store Maintenance Ticket Routing

    Reported store issues are classified, matched to an approved service
    provider with capacity, and watched against their SLA.

    ---

    ### Ticket Routing

    - `POST /tickets` - Report an issue and route it
    - `POST /tickets/{id}/reject` - Technician rejects an assignment
    - `POST /tickets/{id}/reroute` - Retry routing for an unassigned ticket
    - `GET /tickets/{id}/assignments` - Assignment history

    **Scoring**: skill match 0.4, proximity 0.3, availability 0.2,
    performance 0.1 (HIGH priority favours proximity and availability)

    ---

    ### SLA Escalation

    - `GET /sla/policy` - Active SLA table
    - `POST /sla/sweep` - Run an escalation sweep now
    - `GET /sla/escalations/open` - Open escalations
    - `POST /sla/escalations/{id}/acknowledge` / `resolve`
    - `GET /tickets/{id}/escalations` - Escalation history

    | Priority | Assignment | Acceptance | Resolution |
    |----------|-----------|------------|------------|
    | HIGH     | 15 min    | 30 min     | 4 h        |
    | MEDIUM   | 30 min    | 60 min     | 12 h       |
    | LOW      | 120 min   | 240 min    | 48 h       |
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # === CORS Middleware ===
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(CorrelationIDMiddleware)
    application.add_exception_handler(ApplicationException, application_exception_handler)
    application.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    application.include_router(routing_router)
    application.include_router(ticket_escalations_router)
    application.include_router(sla_router)

    application.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    application.add_api_route("/", root, methods=["GET"], tags=["Root"])

    return application


# === Health Check Endpoint ===

async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports SLA policy, scheduler and classifier state.
    """
    state = request.app.state
    scheduler = getattr(state, "escalation_scheduler", None)

    checks = {
        "sla_policy": "loaded" if getattr(state, "sla_policy", None) else "not_loaded",
        "escalation_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "classifier": "available" if getattr(state, "classifier", None) else "not_configured",
        "slack": "configured" if settings.slack_webhook_url else "not_configured",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "routing": {"prefix": "/tickets"},
            "sla": {"prefix": "/sla"}
        }
    }


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storedesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
