"""Exception types raised by ``budget_rules``.

Most engine failures never surface as exceptions: malformed input becomes a
``False``/``None`` result and per-rule failures become failed execution
records. These types cover the remaining caller errors.
"""

from __future__ import annotations


class RuleEngineError(Exception):
    """Base class for errors raised by the rule engine."""


class ConfigurationError(RuleEngineError, ValueError):
    """The caller supplied no transaction or no rule set."""


__all__ = ["ConfigurationError", "RuleEngineError"]
