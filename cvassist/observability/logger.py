"""Structured logging for cvassist (structlog on top of stdlib logging).

Every entry carries the app name and version. Log lines emitted while a
question is being answered also carry a ``query_id`` bound through
contextvars, so one query can be followed across components without
logging the question text itself.
"""

import hashlib
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor

from .. import __version__

LOG_FORMATS = ("json", "console")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp each entry with the application name and version."""
    event_dict.setdefault("app", "cvassist")
    event_dict.setdefault("version", __version__)
    return event_dict


def drop_empty_fields(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Remove keyword fields that are None so JSON lines stay compact."""
    return {key: value for key, value in event_dict.items() if value is not None}


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" for machine-readable lines, "console" for a terminal
        log_file: Optional file that receives a copy of every line
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {log_format!r}")
    level = getattr(logging, log_level.upper(), logging.INFO)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        drop_empty_fields,
    ]
    if log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Logs go to stderr so CLI output on stdout stays parseable (--json)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))
    for handler in handlers:
        handler.setFormatter(logging.Formatter("%(message)s"))

    logging.basicConfig(level=level, handlers=handlers, force=True)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger.

    Example:
        logger = get_logger(__name__)
        logger.info("vector_query_complete", source="chroma", count=3)
    """
    return structlog.get_logger(name)


def query_id(text: str) -> str:
    """Short stable identifier for a question (first 12 hex chars of its sha256)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


@contextmanager
def query_context(text: str) -> Iterator[str]:
    """Bind ``query_id`` for every log line emitted inside the block."""
    qid = query_id(text)
    with structlog.contextvars.bound_contextvars(query_id=qid):
        yield qid


# Defaults until the CLI (or an embedding application) reconfigures
setup_logging()
