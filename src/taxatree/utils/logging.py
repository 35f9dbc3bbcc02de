"""loguru configuration shared by the library and the CLI."""

from __future__ import annotations

import sys
import time
from contextlib import contextmanager
from typing import Any, Iterator

from loguru import logger

from ..config.settings import Settings, get_settings

_CONTEXT_DEFAULTS = {"run_id": "-", "step": "-", "module": "taxatree"}

_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[run_id]}</cyan>:<magenta>{extra[step]}</magenta> | "
    "<blue>{extra[module]}</blue> - {message}"
)


def configure_logging(
    settings: Settings | None = None,
    level: str | None = None,
    *,
    log_file: bool = True,
) -> None:
    """Replace loguru sinks with a stderr sink and, optionally, a rotating file.

    ``level`` defaults to ``settings.log_level``. The file sink writes to
    ``settings.log_file`` and is queued so worker threads never block on disk.
    """

    cfg = settings or get_settings()
    threshold = (level or cfg.log_level).upper()

    logger.remove()
    logger.configure(extra=dict(_CONTEXT_DEFAULTS))
    logger.add(
        sys.stderr,
        level=threshold,
        backtrace=False,
        diagnose=False,
        format=_LOG_FORMAT,
    )
    destination = None
    if log_file:
        destination = cfg.log_file
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            destination,
            level=threshold,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
            encoding="utf-8",
            format=_LOG_FORMAT,
        )
    logger.debug("Logging configured", threshold=threshold, log_file=str(destination) if destination else None)


def get_logger(**context: Any):
    """Return a logger bound to ``context`` (usually ``module=__name__``)."""

    return logger.bind(**context)


@contextmanager
def logging_context(**context: Any) -> Iterator[Any]:
    """Bind structured fields for the duration of a block.

    ``None`` values are skipped so an inner block never erases a ``run_id``
    set by an enclosing one.
    """

    fields = {key: value for key, value in context.items() if value is not None}
    with logger.contextualize(**fields):
        yield logger


@contextmanager
def log_timing(step: str, *, logger_=logger, **fields: Any) -> Iterator[None]:
    """Log the wall-clock duration of a block once it exits."""

    start = time.perf_counter()
    try:
        yield
    finally:
        logger_.info("Step timing", step=step, seconds=round(time.perf_counter() - start, 3), **fields)


__all__ = ["configure_logging", "get_logger", "logging_context", "log_timing"]
