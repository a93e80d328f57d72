"""Log initialisation for the service.

Output goes through stdlib ``logging`` with structlog rendering each event,
either as ``key=value`` text or as one JSON object per line.
"""

from __future__ import annotations

import logging
import sys
from typing import Dict, List, Optional

import structlog
from structlog.types import Processor

from .errors import LogConfigError

LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}
FALLBACK_LEVEL = "debug"

TEXT_FORMAT = "text"
STRUCTURED_FORMAT = "structured"
FORMATS: Dict[str, str] = {
    TEXT_FORMAT: TEXT_FORMAT,
    STRUCTURED_FORMAT: STRUCTURED_FORMAT,
    "json": STRUCTURED_FORMAT,
    "logstash": STRUCTURED_FORMAT,
}

_handler: Optional[logging.Handler] = None


def _renderer(fmt: str) -> Processor:
    if fmt == STRUCTURED_FORMAT:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def _configure(level: int, fmt: str) -> None:
    global _handler

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(_handler)
    root.setLevel(level)

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(fmt),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def init_log(level: str, fmt: str) -> None:
    """Configure logging; raises LogConfigError after applying fallbacks for bad values."""
    problems = []
    resolved_level = LEVELS.get(level)
    if resolved_level is None:
        problems.append(f"unknown log level {level!r}, using {FALLBACK_LEVEL}")
        resolved_level = LEVELS[FALLBACK_LEVEL]
    resolved_format = FORMATS.get(fmt)
    if resolved_format is None:
        problems.append(f"unknown log format {fmt!r}, using {TEXT_FORMAT}")
        resolved_format = TEXT_FORMAT

    _configure(resolved_level, resolved_format)

    if problems:
        raise LogConfigError("; ".join(problems))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
