"""loguru sinks for interactive keying sessions."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import Any, Iterator

from loguru import logger

from ..config.settings import Settings, get_settings

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[key]} | {extra[step]} | {name}:{line} | {message} | {extra}"
)
_CONSOLE_FORMAT = "<level>{level: <8}</level> | <cyan>{extra[key]}</cyan> | {message}"


def configure_logging(
    settings: Settings | None = None,
    *,
    console_level: str = "WARNING",
    file_level: str | None = None,
    log_to_file: bool = True,
) -> None:
    """Replace all sinks with a stderr sink and, optionally, the rotating log file.

    The console stays at WARNING by default so prompts are not interleaved with
    log lines; the file sink follows ``settings.log_level``.
    """

    cfg = settings or get_settings()

    logger.remove()
    logger.configure(extra={"key": "-", "step": "-"})
    logger.add(
        sys.stderr,
        level=console_level.upper(),
        backtrace=False,
        diagnose=False,
        format=_CONSOLE_FORMAT,
    )
    if not log_to_file:
        return
    cfg.log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        cfg.log_file,
        level=(file_level or cfg.log_level).upper(),
        rotation="10 MB",
        retention="14 days",
        encoding="utf-8",
        format=_FILE_FORMAT,
    )


def get_logger(**context: Any):
    """Return ``logger`` bound to ``context`` (modules pass ``module=__name__``)."""

    return logger.bind(**context)


@contextmanager
def logging_context(**context: Any) -> Iterator[Any]:
    """Tag every record emitted inside the block, e.g. ``key=...`` and ``step=...``."""

    with logger.contextualize(**context):
        yield logger


__all__ = ["configure_logging", "get_logger", "logging_context"]
