"""structlog setup for the mcpdecl CLI.

Library modules only call ``structlog.get_logger(__name__)``; configuring
output is left to the entry point.
"""

import logging
import os
import sys

import structlog

DEBUG_ENV_VAR = "MCPDECL_DEBUG"


def _stderr_logger(*args) -> structlog.PrintLogger:
    # resolved per logger, not at configure time
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(debug: bool = False) -> None:
    """Configure structlog to write to stderr.

    Logs at INFO, or DEBUG when ``debug`` is true or MCPDECL_DEBUG is set.
    """
    debug = debug or bool(os.environ.get(DEBUG_ENV_VAR))
    level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
