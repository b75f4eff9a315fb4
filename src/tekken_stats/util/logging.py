import logging
import sys

import structlog


def configure_logging(humanize=False, level="INFO"):
    """
    Configure structlog on top of the standard library logging module.

    Args:
        humanize: Render colored, human readable lines instead of JSON
        level: Name or number of the minimum level to emit
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if humanize:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name):
    return structlog.get_logger(name)
