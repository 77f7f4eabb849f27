"""
Tool: Logging Setup
Purpose: structlog over stdlib logging for the engine and the CLI

Usage:
    from skinminder.logging_config import bind_context, get_logger, setup_logging

    setup_logging(level="DEBUG")
    bind_context(command="reconcile")
    get_logger(__name__).info("reconcile_started", categories=3)

Environment:
    SKINMINDER_LOG_LEVEL   wins over the level passed in (e.g. from args/notifications.yaml)
    SKINMINDER_LOG_FORMAT  "json" for one JSON object per line, "console" otherwise

Engine modules log through logging.getLogger(__name__). Their records go
through the same processor chain as structlog loggers, so bound context
(the CLI command, for one) shows up on every line.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Any

import structlog

LEVEL_ENV = "SKINMINDER_LOG_LEVEL"
FORMAT_ENV = "SKINMINDER_LOG_FORMAT"


def _resolve_level(level: str | None) -> int:
    name = (os.environ.get(LEVEL_ENV) or level or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _resolve_json(json_output: bool | None) -> bool:
    env = os.environ.get(FORMAT_ENV, "").lower()
    if env:
        return env == "json"
    return bool(json_output)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
    stream: IO[str] | None = None,
) -> None:
    """
    Route structlog and stdlib logging to one handler.

    Args:
        level: Level name; the environment variable takes precedence
        json_output: JSON lines instead of console rendering
        stream: Destination (stderr by default, keeping stdout for command output)
    """
    shared = _shared_processors()
    renderer: structlog.types.Processor
    if _resolve_json(json_output):
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(**values: Any) -> None:
    """Attach key/values to every log line emitted from this context."""
    structlog.contextvars.bind_contextvars(**values)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = ["bind_context", "clear_context", "get_logger", "setup_logging"]
