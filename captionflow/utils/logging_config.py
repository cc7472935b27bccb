"""Logging setup shared by the CLI, the REST API and background render jobs.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides the root level and the handler. Per-segment progress is logged at
INFO, retry sleeps at WARNING and normalizer fallbacks at DEBUG.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# httpx logs one INFO line per request and the multipart parser logs every
# form part, so both stay at WARNING unless the app itself runs at DEBUG.
_CHATTY_LIBRARIES: tuple[str, ...] = (
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
)


def _resolve_level(level: LogLevel | None, verbose: bool, quiet: bool) -> int:
    if level is not None:
        return logging.getLevelName(level.upper())
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.CRITICAL
    from_env = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").strip().upper())
    return from_env if isinstance(from_env, int) else logging.INFO


def configure_logging(
    *,
    level: LogLevel | None = None,
    verbose: bool = False,
    quiet: bool = False,
    format_string: str | None = None,
) -> int:
    """Configure the root logger for a captionflow process.

    Precedence is ``level``, then ``verbose``, then ``quiet``, then the
    ``LOG_LEVEL`` environment variable (INFO when unset or unknown).

    Args:
        level: Explicit level name, e.g. ``"DEBUG"`` for ``serve --debug``.
        verbose: DEBUG level, as for ``transcribe --verbose``.
        quiet: Only critical messages, as for ``transcribe --quiet``.
        format_string: Replacement for :data:`DEFAULT_LOG_FORMAT`.

    Returns:
        int: The numeric level that was applied.
    """
    log_level = _resolve_level(level, verbose, quiet)

    logging.basicConfig(
        level=log_level,
        format=format_string or DEFAULT_LOG_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    library_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    logging.getLogger(__name__).debug(
        "Logging configured at %s", logging.getLevelName(log_level)
    )
    return log_level


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (normally the caller's ``__name__``)."""
    return logging.getLogger(name)


__all__ = [
    "DEFAULT_LOG_FORMAT",
    "configure_logging",
    "get_logger",
]
