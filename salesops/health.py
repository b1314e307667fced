"""
Health check and monitoring endpoints for production.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from salesops import __version__
from salesops.config import config
from salesops.database import get_db
from salesops.logging_config import logger

router = APIRouter(tags=["Health & Monitoring"])


# GET /health
# Gets: nothing
# Returns: {status, service, version}
# Example:
#   curl http://localhost:8000/health
@router.get("/health")
async def health_check():
    """
    Basic health check - returns 200 if service is running.
    Use this for basic liveness probes.
    """
    return {
        "status": "healthy",
        "service": "salesops",
        "version": __version__
    }


# GET /health/ready
# Gets: nothing
# Returns: dependency readiness checks; 503 when the database is unreachable
# Example:
#   curl http://localhost:8000/health/ready
@router.get("/health/ready")
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check - verifies all dependencies are available.
    Use this for Kubernetes readiness probes.

    Checks:
    - Database connectivity (required)
    - Twilio / Resend configuration (reported only)
    """
    checks = {
        "database": False,
        "twilio": config.has_twilio_config() or "not_configured",
        "resend": config.has_resend_config() or "not_configured",
        "ready": False
    }

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True
        logger.debug("readiness_check_database", status="ok")
    except Exception as e:
        logger.warning("readiness_check_database", status="error", error=str(e))

    # Providers are optional: the in-app channel always works.
    checks["ready"] = checks["database"] is True

    return JSONResponse(content=checks, status_code=200 if checks["ready"] else 503)


# GET /health/info
# Gets: nothing
# Returns: service configuration summary
# Example:
#   curl http://localhost:8000/health/info
@router.get("/health/info")
async def system_info():
    """
    System information and configuration status.
    """
    return {
        "service": "salesops",
        "version": __version__,
        "configuration": {
            "database_backend": config.DATABASE_URL.split(":", 1)[0],
            "automations_async": config.AUTOMATIONS_ASYNC,
            "debug_mode": config.DEBUG
        },
        "features": {
            "sms": config.has_twilio_config(),
            "voice": config.has_twilio_config(),
            "email": config.has_resend_config(),
            "in_app": True,
            "confirmation_sweep_seconds": config.CONFIRMATION_SWEEP_SECONDS,
        }
    }
