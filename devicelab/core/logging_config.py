"""Structured logging setup shared by the API server and the celery worker."""

import logging

import structlog

from devicelab.config import settings


def configure_logging(level: str | None = None) -> None:
    """Configure stdlib logging and structlog to emit JSON lines."""
    logging.basicConfig(
        format="%(message)s",
        level=(level or settings.LOG_LEVEL).upper(),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
