"""Rule matching: criteria combination, rule ordering, first-match lookup.

Two matching philosophies live side by side and are not interchangeable:

- :func:`find_first_match` is first-match-wins. It returns the single rule
  that comes first in evaluation order and matches. ``status`` is ignored
  unless ``active_only`` is set; the "best category" lookup
  (:func:`get_category_for_transaction`) sets it.
- Cumulative apply (every matching rule not marked inactive, in order) is done by
  :func:`budget_rules.api.process_transaction`.

Both share the same total evaluation order from :func:`rule_sort_key`.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from .logging_setup import get_logger
from .models import Rule, Transaction
from .predicates import evaluate_predicate

logger = get_logger("budget_rules.matching")

_STATUS_RANK = {"active": 0, "pending": 1, "inactive": 2}


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def rule_sort_key(rule: Rule) -> tuple:
    """Total order key: ``priority`` asc, then ``created_at`` asc, then ``id`` asc.

    Rules without a priority (or creation time) sort after those that have
    one, so the result never depends on input position.
    """

    created = rule.created_at
    return (
        rule.priority is None,
        rule.priority if rule.priority is not None else 0,
        created is None,
        _as_utc(created) if created is not None else datetime.min.replace(tzinfo=UTC),
        rule.id or "",
    )


def sort_rules(rules: Iterable[Rule]) -> list[Rule]:
    """Return ``rules`` in evaluation order (see :func:`rule_sort_key`)."""

    return sorted(rules, key=rule_sort_key)


def status_rank(status: str) -> int:
    """Display order for rule status: active, then pending, then inactive."""

    return _STATUS_RANK.get(status, len(_STATUS_RANK))


def evaluate_criteria(rule: Rule, transaction: Transaction) -> list[bool]:
    """Evaluate every criterion of ``rule`` (no short-circuit) in declaration order."""

    outcomes: list[bool] = []
    for criterion in rule.criteria:
        ok = evaluate_predicate(
            criterion.field,
            criterion.operator,
            criterion.value,
            transaction.field_value(criterion.field),
        )
        logger.debug(
            "rule=%s criterion=%s %s %s %r -> %s",
            rule.id,
            criterion.id,
            criterion.field,
            criterion.operator,
            criterion.value,
            ok,
        )
        outcomes.append(ok)
    return outcomes


def rule_matches(rule: Rule, transaction: Transaction) -> bool:
    """Return whether ``transaction`` satisfies ``rule``'s criteria.

    An empty criteria list never matches. ``AND`` requires every criterion,
    ``OR`` at least one.
    """

    if not rule.criteria:
        return False
    outcomes = evaluate_criteria(rule, transaction)
    if rule.relation_operator == "OR":
        return any(outcomes)
    return all(outcomes)


def find_first_match(
    transaction: Transaction, rules: Iterable[Rule], *, active_only: bool = False
) -> Rule | None:
    """Return the first rule in evaluation order that matches, or ``None``."""

    for rule in sort_rules(rules):
        if active_only and rule.status != "active":
            continue
        if rule_matches(rule, transaction):
            return rule
    return None


def get_category_for_transaction(transaction: Transaction, rules: Iterable[Rule]) -> str | None:
    """Category assigned by the first matching active rule (its last category action)."""

    rule = find_first_match(transaction, rules, active_only=True)
    if rule is None:
        return None
    category: str | None = None
    for action in rule.actions:
        if action.type == "category":
            category = action.value
    return category


def filter_matching(rule: Rule, transactions: Sequence[Transaction]) -> list[Transaction]:
    """Return the transactions ``rule`` matches, preserving input order."""

    return [tx for tx in transactions if rule_matches(rule, tx)]


__all__ = [
    "evaluate_criteria",
    "filter_matching",
    "find_first_match",
    "get_category_for_transaction",
    "rule_matches",
    "rule_sort_key",
    "sort_rules",
    "status_rank",
]
