import logging
from logging import CRITICAL, DEBUG, ERROR, INFO, WARNING

import structlog
from structlog.dev import ConsoleRenderer
from structlog.processors import (
    CallsiteParameter,
    CallsiteParameterAdder,
    JSONRenderer,
    StackInfoRenderer,
    TimeStamper,
    format_exc_info,
)
from structlog.stdlib import PositionalArgumentsFormatter, add_log_level, add_logger_name

from telemetry_backend.config import settings


def configure_logging():
    """Configures structlog for consistent logging across ingestion, aggregation and scheduling."""

    log_level_map = {
        "DEBUG": DEBUG,
        "INFO": INFO,
        "WARNING": WARNING,
        "ERROR": ERROR,
        "CRITICAL": CRITICAL,
    }
    current_log_level = log_level_map.get(settings.LOG_LEVEL.upper(), INFO)

    shared_processors = [
        add_log_level,
        add_logger_name,
        TimeStamper(fmt="iso"),
        StackInfoRenderer(),
        format_exc_info,
        PositionalArgumentsFormatter(),
        CallsiteParameterAdder(
            {
                CallsiteParameter.FILENAME,
                CallsiteParameter.LINENO,
                CallsiteParameter.FUNC_NAME,
            }
        ),
    ]

    if settings.DEBUG:
        renderer = ConsoleRenderer(colors=True)
    else:
        # JSON output for log aggregation
        renderer = JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(level=current_log_level, format="%(message)s", handlers=[logging.StreamHandler()])
    logging.root.setLevel(current_log_level)

    # Suppress some chatty loggers
    logging.getLogger("sqlalchemy").setLevel(WARNING)
    logging.getLogger("aiosqlite").setLevel(WARNING)
    logging.getLogger("asyncpg").setLevel(WARNING)
