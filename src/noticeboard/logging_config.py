"""structlog setup.

Learn: Modules call structlog.get_logger() and log dotted event names
("auth.failed", "profile.updated") with keyword context. This function
wires the processors once at startup: contextvars first so the request id
bound by RequestIdMiddleware lands in every entry, then a console renderer
for local development or JSON lines for anything shipped to a collector.
"""

import logging

import structlog

from noticeboard.config import settings


def configure_logging() -> None:
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
