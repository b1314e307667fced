"""Main FastAPI application."""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from salesops import __version__
from salesops.config import config
from salesops.database import init_db
from salesops.health import router as health_router
from salesops.logging_config import logger
from salesops.metrics import api_request_duration, api_requests_total
from salesops.routers.appointments import router as appointments_router
from salesops.routers.automations import router as automations_router
from salesops.routers.confirmations import router as confirmations_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    # Startup
    logger.info("application_starting", version=__version__)
    init_db()
    logger.info("database_initialized")
    logger.info("twilio_configured", configured=config.has_twilio_config())
    logger.info("resend_configured", configured=config.has_resend_config())
    logger.info("automations_mode", mode="celery" if config.AUTOMATIONS_ASYNC else "inline")

    yield

    # Shutdown
    logger.info("application_shutting_down")


app = FastAPI(
    title="SalesOps Automations API",
    description="Automation rules and appointment confirmation scheduling for sales teams",
    version=__version__,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    api_request_duration.observe(time.time() - start)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    api_requests_total.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
    return response


app.include_router(health_router)
app.include_router(automations_router)
app.include_router(confirmations_router)
app.include_router(appointments_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "SalesOps Automations API",
        "version": __version__,
        "description": "Runs team-configured automation rules on business events and schedules appointment confirmations",
        "endpoints": {
            "trigger": "/automations/trigger",
            "trigger_preview": "/automations/trigger/preview",
            "rules": "/automations/rules",
            "runs": "/automations/runs",
            "confirmation_schedule": "/teams/{team_id}/confirmation-schedule",
            "appointments": "/appointments",
            "confirmation_attempts": "/confirmation-tasks/{task_id}/attempts",
        },
        "features": [
            "Trigger-driven automation rules",
            "SMS, voice, email and in-app messaging",
            "Custom webhooks",
            "Confirmation schedules with overdue escalation"
        ]
    }


@app.get("/metrics")
async def metrics():
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
