"""Predicate evaluation for a single criterion against one transaction field.

The evaluator is total: every input combination yields a boolean. Unparseable
criterion values, missing transaction values, and unrecognized fields or
operators all evaluate to ``False`` (the latter two are logged). Nothing here
raises into the matching pipeline.

Type semantics
--------------
- String fields (``payee``, ``memo``, ``account``) compare case-insensitively.
- ``amount`` parses the criterion value as a float. ``equals`` is exact float
  equality with no tolerance; ``between`` takes ``"min,max"`` and is inclusive.
- ``date`` compares calendar days for ``equals`` and full timestamps for
  ``after``/``before``/``between`` (``"start,end"``, inclusive). Naive
  timestamps are treated as UTC.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, date, datetime
from typing import Any

from .logging_setup import get_logger
from .models import FIELD_OPERATORS, STRING_FIELDS

logger = get_logger("budget_rules.predicates")


# ---------------------------------------------------------------------------
# Value parsing helpers
# ---------------------------------------------------------------------------


def parse_amount(raw: Any) -> float | None:
    """Parse a criterion or transaction amount; ``None`` when not a finite number."""

    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int | float):
        num = float(raw)
    elif isinstance(raw, str):
        try:
            num = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return num if math.isfinite(num) else None


def parse_timestamp(raw: Any) -> datetime | None:
    """Parse an ISO-8601 date or date-time into an aware ``datetime``.

    Date-only strings become midnight UTC. Naive date-times are taken as UTC.
    Returns ``None`` when the value cannot be parsed.
    """

    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, date):
        dt = datetime(raw.year, raw.month, raw.day)
    elif isinstance(raw, str) and raw.strip():
        try:
            dt = datetime.fromisoformat(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def parse_calendar_day(raw: Any) -> date | None:
    """Return the calendar day as written, ignoring time-of-day and offset."""

    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            return datetime.fromisoformat(raw.strip()).date()
        except ValueError:
            return None
    return None


def split_range(value: str) -> tuple[str, str] | None:
    """Split a ``"low,high"`` range value into two trimmed parts."""

    parts = [p.strip() for p in value.split(",")]
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


# ---------------------------------------------------------------------------
# Per-type evaluators
# ---------------------------------------------------------------------------


def evaluate_string(operator: str, value: str, field_value: Any) -> bool:
    if field_value is None or not isinstance(field_value, str) or not field_value:
        return False

    if operator == "regex":
        try:
            return re.search(value, field_value, flags=re.IGNORECASE) is not None
        except re.error as e:
            logger.warning("Invalid regex pattern %r: %s", value, e)
            return False

    haystack = field_value.casefold()
    needle = value.casefold()
    match operator:
        case "contains":
            return needle in haystack
        case "equals":
            return haystack == needle
        case "starts_with":
            return haystack.startswith(needle)
        case "ends_with":
            return haystack.endswith(needle)
    logger.warning("Unrecognized string operator: %r", operator)
    return False


def evaluate_amount(operator: str, value: str, field_value: Any) -> bool:
    amount = parse_amount(field_value)
    if amount is None:
        return False

    if operator == "between":
        bounds = split_range(value)
        if bounds is None:
            return False
        low, high = parse_amount(bounds[0]), parse_amount(bounds[1])
        if low is None or high is None:
            return False
        return low <= amount <= high

    target = parse_amount(value)
    if target is None:
        return False
    match operator:
        case "equals":
            return amount == target
        case "greater_than":
            return amount > target
        case "less_than":
            return amount < target
    logger.warning("Unrecognized amount operator: %r", operator)
    return False


def evaluate_date(operator: str, value: str, field_value: Any) -> bool:
    if field_value is None or field_value == "":
        return False

    if operator == "equals":
        day = parse_calendar_day(field_value)
        target_day = parse_calendar_day(value)
        return day is not None and target_day is not None and day == target_day

    moment = parse_timestamp(field_value)
    if moment is None:
        return False

    if operator == "between":
        bounds = split_range(value)
        if bounds is None:
            return False
        start, end = parse_timestamp(bounds[0]), parse_timestamp(bounds[1])
        if start is None or end is None:
            return False
        return start <= moment <= end

    target = parse_timestamp(value)
    if target is None:
        return False
    match operator:
        case "after":
            return moment > target
        case "before":
            return moment < target
    logger.warning("Unrecognized date operator: %r", operator)
    return False


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def evaluate_predicate(field: str, operator: str, value: str, transaction_value: Any) -> bool:
    """Evaluate ``(field, operator, value)`` against a transaction field value.

    Returns ``False`` for unknown fields, operators not valid for ``field``,
    unparseable criterion values, and missing/empty transaction values.
    """

    allowed = FIELD_OPERATORS.get(field)
    if allowed is None:
        logger.warning("Unrecognized criterion field: %r", field)
        return False
    if operator not in allowed:
        logger.warning("Unrecognized operator %r for field %r", operator, field)
        return False
    if not isinstance(value, str):
        return False

    if field in STRING_FIELDS:
        return evaluate_string(operator, value, transaction_value)
    if field == "amount":
        return evaluate_amount(operator, value, transaction_value)
    return evaluate_date(operator, value, transaction_value)


__all__ = [
    "evaluate_amount",
    "evaluate_date",
    "evaluate_predicate",
    "evaluate_string",
    "parse_amount",
    "parse_calendar_day",
    "parse_timestamp",
    "split_range",
]
