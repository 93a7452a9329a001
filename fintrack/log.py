"""
Local Logging

Every mutating ledger operation emits one structured event. These logs are
for debugging and operations only; they are not an audit trail and nothing
reads them back.
"""

import logging
from typing import Optional

import structlog

from fintrack.config import get_settings


_configured = False


def configure_logging(level: Optional[str] = None, json: Optional[bool] = None) -> None:
    """
    Configure structlog on top of the standard library logger.

    Safe to call more than once; only the first call has an effect unless
    `level` or `json` are passed explicitly.
    """
    global _configured
    if _configured and level is None and json is None:
        return

    app_settings = get_settings().app
    level = level or app_settings.log_level
    json = app_settings.log_json if json is None else json

    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger("fintrack").setLevel(level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger, configuring structlog on first use."""
    configure_logging()
    return structlog.get_logger(name)
