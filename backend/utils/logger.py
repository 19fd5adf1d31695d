"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from backend.utils.config import get_settings


_LOGGER_INITIALIZED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once."""

    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    settings = get_settings()
    resolved_level = (level or settings.log_level).upper()

    logging.basicConfig(
        level=resolved_level,
        format=(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
        ),
        stream=sys.stdout,
    )
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)


def _format_fields(fields: dict[str, Any]) -> str:
    return "".join(f" | {key}={value}" for key, value in fields.items())


@contextmanager
def log_span(logger: logging.Logger, step: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """Emit start/completion events with elapsed time around one workflow step.

    The yielded dict can be filled in by the caller; its entries are appended
    to the completion event (e.g. result counts known only after the step).
    """
    outcome: dict[str, Any] = {}
    started = time.perf_counter()
    logger.info("Step started | step=%s%s", step, _format_fields(fields))
    try:
        yield outcome
    except Exception:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.warning(
            "Step failed | step=%s | elapsed_ms=%.2f%s",
            step,
            elapsed_ms,
            _format_fields(fields),
        )
        raise
    elapsed_ms = (time.perf_counter() - started) * 1000.0
    logger.info(
        "Step completed | step=%s | elapsed_ms=%.2f%s",
        step,
        elapsed_ms,
        _format_fields({**fields, **outcome}),
    )
