"""structlog setup for long-running processes.

Learn: modules only ever call structlog.get_logger(); the processors
chosen here decide what a line looks like. Development gets the
coloured console renderer, everything else one JSON object per line
so the log shipper can index request_id, team_id and friends.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog


def configure_logging(
    debug: bool = False,
    json_logs: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure structlog and the stdlib root logger (uvicorn, redis)."""
    level = logging.DEBUG if debug else logging.INFO
    out = stream or sys.stderr

    logging.basicConfig(
        level=level,
        stream=out,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=stream is None and out.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=False,
    )
