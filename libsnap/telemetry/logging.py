"""
libsnap: Structured Logging

Operational logging for the library itself, via structlog. This is not the
run log (see diagnostics/run_logger.py): it records what the diagnostics
core does (escalations, races, sudo writes) for whoever debugs a tool.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from libsnap.config import LoggingConfig


def _add_pid(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # Several processes of one run share stderr
    event_dict.setdefault("pid", os.getpid())
    return event_dict


def setup_logging(config: LoggingConfig, tool_name: str = "") -> None:
    """
    Configure structured logging for the calling tool.

    Output goes to stderr so it never mixes with a tool's stdout payload.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _add_pid,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if tool_name:
        structlog.contextvars.bind_contextvars(tool=tool_name)

    renderer: Any
    if config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.WARNING))
