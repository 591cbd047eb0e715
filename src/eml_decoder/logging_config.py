"""
Structured logging configuration using structlog.

Every module calls ``structlog.get_logger(__name__)`` directly; there is no
wrapper helper. :func:`setup_logging` installs the processors and writes log
lines to stderr, keeping stdout free for CLI output. The CLI calls it, library
users may call it or configure structlog themselves.
"""

import logging
import sys
from typing import Optional

import structlog

from .config import Settings, settings as default_settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog for structured JSON logging.

    Sets up processors for:
    - Context variable merging
    - Log level addition
    - Exception info rendering
    - Timestamp addition
    - JSON or console rendering based on settings

    Args:
        settings: Settings to read log_level/log_json from (global settings by default)
    """
    settings = settings or default_settings
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.processors.JSONRenderer()
                if settings.log_json
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
