"""
Structured logging for the API process and the Celery worker.

Every record carries `service` and, inside `dispatch_context`, the team and
trigger of the dispatch being processed, so that rule engine, executor and
provider logs of one event can be joined.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog

from salesops.config import config

SERVICE_NAME = "salesops"

# Client libraries that log every outbound request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "twilio.http_client", "celery.app.trace", "urllib3")


def _add_service(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: str = None, json_output: bool = None) -> None:
    """
    Route stdlib logging and structlog through one pipeline.

    JSON lines unless DEBUG is on, in which case the console renderer is used.
    """
    level_name = (level or config.LOG_LEVEL).upper()
    json_output = (not config.DEBUG) if json_output is None else json_output

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> Any:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("automation_dispatch_started", team_id="t1", trigger_type="lead_created")
        logger.warning("automation_step_skipped", step_id="s1", reason="no_provider_for_channel")
    """
    return structlog.get_logger(name)


@contextmanager
def dispatch_context(team_id: str, trigger_type: str, **extra: Any) -> Iterator[None]:
    """Bind team / trigger to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(team_id=team_id, trigger_type=trigger_type, **extra):
        yield


configure_logging()

logger = get_logger(SERVICE_NAME)
