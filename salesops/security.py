"""
API key guard for routes that change rules, schedules or appointments.
Read-only routes stay open.
"""

import secrets

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from salesops.config import config
from salesops.logging_config import get_logger

logger = get_logger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str = Security(api_key_header)) -> str:
    """
    Usage:
        @router.post("/automations/rules")
        def create_rule(request: RuleCreateRequest, api_key: str = Depends(verify_api_key)):
            ...

    With no API_KEY configured every caller is let through (local development).
    """
    if not config.API_KEY:
        return "development"

    if not api_key or not secrets.compare_digest(api_key, config.API_KEY):
        logger.warning("api_key_authentication_failed", provided_key=api_key[:4] if api_key else None)
        raise HTTPException(status_code=403, detail="Invalid or missing API key")

    return api_key
