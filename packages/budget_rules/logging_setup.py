"""Logging for the ``budget_rules`` package.

Engine modules log through ``get_logger("budget_rules.<module>")`` and never
attach handlers themselves; until a host configures output, the package
logger carries a ``NullHandler`` and stays silent.

``configure_logging`` is the single place output is set up. The CLI calls it
once per process. Level and format fall back to environment settings:

- ``BUDGET_RULES_LOG_LEVEL``: level name (``DEBUG``, ``warning``) or number.
- ``BUDGET_RULES_LOG_FORMAT``: a ``logging.Formatter`` format string.

Rule-level diagnostics use these levels: per-criterion outcomes at DEBUG,
unrecognized fields/operators/action types and bad regexes at WARNING,
failed rules and rejected imports at ERROR.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

LOG_LEVEL_ENV = "BUDGET_RULES_LOG_LEVEL"
LOG_FORMAT_ENV = "BUDGET_RULES_LOG_FORMAT"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_PKG_LOGGER_NAME = "budget_rules"
_handler: logging.Handler | None = None


def _coerce_level(level: int | str | None) -> int | None:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    return None


def resolve_level(level: int | str | None = None) -> int:
    """Return the effective level: explicit value, then ``BUDGET_RULES_LOG_LEVEL``, then INFO.

    An explicit but unrecognized level name falls back to INFO rather than to
    the environment.
    """

    if level is None:
        level = os.getenv(LOG_LEVEL_ENV)
    resolved = _coerce_level(level)
    return logging.INFO if resolved is None else resolved


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
    force: bool = False,
) -> logging.Logger:
    """Attach one ``StreamHandler`` to the ``budget_rules`` logger and return it.

    Later calls are no-ops unless ``force`` is set, in which case the handler
    installed by the previous call is replaced. ``stream`` defaults to the
    current ``sys.stderr``.
    """

    global _handler
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is not None:
        if not force:
            return pkg_logger
        pkg_logger.removeHandler(_handler)
        _handler = None

    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or os.getenv(LOG_FORMAT_ENV) or DEFAULT_FORMAT))

    pkg_logger.setLevel(resolved)
    pkg_logger.addHandler(handler)
    # Root handlers would print every record a second time.
    pkg_logger.propagate = False

    _handler = handler
    return pkg_logger


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``, giving the package a ``NullHandler`` if unconfigured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "DEFAULT_FORMAT",
    "LOG_FORMAT_ENV",
    "LOG_LEVEL_ENV",
    "configure_logging",
    "get_logger",
    "resolve_level",
]
