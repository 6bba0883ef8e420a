"""Authoring checks for a rule before it is saved or activated.

The models already reject structurally invalid rules (unknown fields,
operators not valid for a field). This module adds the content checks a rule
editor needs: empty values, unparseable amounts and dates, bad regexes,
missing actions, and category/flag values outside the configured vocabulary.
Errors are human-readable and numbered the way the editor shows them.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from .models import ACTION_TYPES, Rule
from .options import RuleOptions
from .predicates import parse_amount, parse_calendar_day, parse_timestamp, split_range


@dataclass(frozen=True, slots=True)
class RuleValidation:
    ok: bool
    errors: tuple[str, ...] = field(default_factory=tuple)


def _criterion_value_errors(field_name: str, operator: str, value: str) -> list[str]:
    if value.strip() == "":
        return ["Value is required"]

    if operator == "regex":
        try:
            re.compile(value)
        except re.error:
            return ["Invalid regex pattern"]
        return []

    if field_name == "amount":
        parts = split_range(value) if operator == "between" else (value,)
        if parts is None:
            return ["Between expects two values separated by a comma"]
        if any(parse_amount(p) is None for p in parts):
            return ["Amount must be a number"]
        if operator == "between" and parse_amount(parts[0]) > parse_amount(parts[1]):
            return ["Between range is reversed (min is greater than max)"]
        return []

    if field_name == "date":
        parts = split_range(value) if operator == "between" else (value,)
        if parts is None:
            return ["Between expects two dates separated by a comma"]
        parse = parse_calendar_day if operator == "equals" else parse_timestamp
        if any(parse(p) is None for p in parts):
            return ["Date must be an ISO-8601 date"]
    return []


def validate_rule(
    rule: Rule | Mapping[str, Any], options: RuleOptions | None = None
) -> RuleValidation:
    """Check ``rule`` for authoring errors; never raises.

    ``options`` restricts ``category``/``flag`` action values when given.
    """

    if not isinstance(rule, Rule):
        try:
            rule = Rule.model_validate(rule)
        except ValidationError as e:
            errors = tuple(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            return RuleValidation(False, errors)

    opts = options or RuleOptions()
    errors: list[str] = []

    if not rule.name.strip():
        errors.append("Rule name is required")

    if not rule.criteria:
        errors.append("At least one condition is required")
    for i, c in enumerate(rule.criteria, start=1):
        problems = _criterion_value_errors(c.field, c.operator, c.value)
        errors.extend(f"Condition #{i}: {msg}" for msg in problems)

    if not rule.actions:
        errors.append("At least one action is required")
    for i, a in enumerate(rule.actions, start=1):
        if a.type not in ACTION_TYPES:
            errors.append(f"Action #{i}: Unknown action type {a.type!r}")
            continue
        if not a.value.strip():
            errors.append(f"Action #{i}: Value is required")
        elif a.type == "category" and not opts.allows_category(a.value):
            errors.append(f"Action #{i}: Unknown category {a.value!r}")
        elif a.type == "flag" and not opts.allows_flag(a.value):
            errors.append(f"Action #{i}: Unknown flag {a.value!r}")

    return RuleValidation(not errors, tuple(errors))


__all__ = ["RuleValidation", "validate_rule"]
