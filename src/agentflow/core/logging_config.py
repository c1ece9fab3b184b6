"""
agentflow.core.logging_config - Structured Logging Setup
==========================================================

Every module logs through ``structlog.get_logger()`` and binds a
``component`` name; this module decides how those events are rendered.
The ``AgentFlow`` facade calls ``configure_logging`` with the configured
level and format before it wires its components, because component
loggers are bound at construction time. Library users who configure
structlog themselves pass ``setup_logging=False`` to the facade.
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog through stdlib logging with a console or JSON renderer.

    Args:
        log_level: Minimum level name (DEBUG, INFO, ...). Unknown names fall
            back to INFO.
        log_format: ``"json"`` for one JSON object per line, anything else
            for the human-readable console renderer.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
