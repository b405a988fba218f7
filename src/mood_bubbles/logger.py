"""Structured logging for the game core, the runners and the backend (*structlog*).

Logs go to stderr so ``mood-bubbles play`` can print its JSON summary on
stdout.  Runners bind the run identity (mode, device, session) once with
:func:`bind_run`; every event emitted during the run then carries it.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

FLOAT_DIGITS = 3


def _round_floats(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Trim simulation floats (positions, shares, speeds) to a readable width."""
    for key, value in event_dict.items():
        if isinstance(value, float):
            event_dict[key] = round(value, FLOAT_DIGITS)
    return event_dict


def setup_logging(level: str = "INFO", *, json: bool | None = None) -> None:
    """Configure *structlog* processors and the level filter.

    ``json`` forces the renderer; by default the console renderer is used on
    a TTY and JSON lines otherwise.
    """
    use_json = (not sys.stderr.isatty()) if json is None else json
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _round_floats,
        structlog.processors.StackInfoRenderer(),
    ]
    if use_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def bind_run(**fields: Any) -> None:
    """Attach run identity (``mode``, ``device``, ``session``) to every event."""
    structlog.contextvars.bind_contextvars(**{k: v for k, v in fields.items() if v is not None})


def clear_run() -> None:
    structlog.contextvars.clear_contextvars()
