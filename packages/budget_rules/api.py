"""Public processing API: cumulative rule application and dry runs.

This is the entry point external callers (UI preview, batch sync) use. The
functions here are pure with respect to their inputs: they never mutate a
transaction or rule and perform no I/O. Persisting execution records or
loading rule sets is the caller's job, after these functions return.

Processing semantics (:func:`process_transaction`)
--------------------------------------------------
- Rules are visited once each in evaluation order (priority, created_at, id).
- Rules whose ``status`` is ``"inactive"`` are skipped without a record;
  ``"pending"`` rules run like active ones.
- Criteria are always evaluated against the transaction as given, so actions
  applied by earlier rules do not change which later rules match.
- Every matching rule's actions are applied cumulatively to a working copy;
  later rules overwrite category/flag, memo actions append.
- A rule that cannot be validated or evaluated yields a failed execution
  record and processing continues with the next rule.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeAlias

from pydantic import ValidationError

from .actions import apply_actions
from .errors import ConfigurationError
from .logging_setup import get_logger
from .matching import find_first_match, rule_matches, rule_sort_key
from .models import ExecutionRecord, ProcessResult, Rule, RuleTestResult, Transaction
from .options import RuleOptions
from .pmap import p_map
from .validation import validate_rule

logger = get_logger("budget_rules.api")

PREVIEW_TRANSACTION_ID = "preview"

RuleInput: TypeAlias = Rule | Mapping[str, Any]
TransactionInput: TypeAlias = Transaction | Mapping[str, Any]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class _RejectedRule:
    """A rule input that failed model validation, kept for its audit record."""

    rule_id: str | None
    status: Any
    reason: str


def _to_transaction(transaction: TransactionInput | None) -> Transaction:
    if transaction is None:
        raise ConfigurationError("no transaction supplied")
    if isinstance(transaction, Transaction):
        return transaction
    try:
        return Transaction.model_validate(transaction)
    except ValidationError as e:
        raise ConfigurationError(f"invalid transaction: {e}") from e


def _prepare_rules(
    rules: Iterable[RuleInput] | None,
) -> tuple[list[Rule], list[_RejectedRule]]:
    """Validate rule inputs individually and return them in evaluation order."""

    if rules is None:
        raise ConfigurationError("no rules supplied")

    valid: list[Rule] = []
    rejected: list[_RejectedRule] = []
    for raw in rules:
        if isinstance(raw, Rule):
            valid.append(raw)
            continue
        try:
            valid.append(Rule.model_validate(raw))
        except (ValidationError, TypeError) as e:
            rid = raw.get("id") if isinstance(raw, Mapping) else None
            rid = str(rid) if rid is not None else None
            status = raw.get("status", "active") if isinstance(raw, Mapping) else None
            rejected.append(_RejectedRule(rule_id=rid, status=status, reason=str(e)))
    valid.sort(key=rule_sort_key)
    return valid, rejected


def _run(
    tx: Transaction,
    rules: Sequence[Rule],
    rejected: Sequence[_RejectedRule],
    now: Callable[[], datetime],
) -> ProcessResult:
    tx_id = tx.id or PREVIEW_TRANSACTION_ID
    records: list[ExecutionRecord] = []

    for bad in rejected:
        if isinstance(bad.status, str) and bad.status.strip().lower() == "inactive":
            continue
        logger.error("Rule %s is malformed and was not evaluated: %s", bad.rule_id, bad.reason)
        records.append(
            ExecutionRecord(
                rule_id=bad.rule_id,
                transaction_id=tx_id,
                success=False,
                executed_at=now(),
                error_message=f"malformed rule: {bad.reason}",
            )
        )

    working = tx
    for rule in rules:
        if rule.status == "inactive":
            continue
        try:
            if not rule_matches(rule, tx):
                continue
            working = apply_actions(rule.actions, working)
        except Exception as e:  # noqa: BLE001 - isolate one rule's failure
            logger.error("Rule %s failed on transaction %s: %s", rule.id, tx_id, e)
            records.append(
                ExecutionRecord(
                    rule_id=rule.id,
                    transaction_id=tx_id,
                    success=False,
                    executed_at=now(),
                    error_message=str(e) or type(e).__name__,
                )
            )
            continue
        logger.debug("Rule %s applied to transaction %s", rule.id, tx_id)
        records.append(
            ExecutionRecord(
                rule_id=rule.id,
                transaction_id=tx_id,
                success=True,
                executed_at=now(),
            )
        )

    return ProcessResult(transaction=working, executions=tuple(records))


def process_transaction(
    transaction: TransactionInput,
    rules: Iterable[RuleInput],
    *,
    now: Callable[[], datetime] = _utcnow,
) -> ProcessResult:
    """Apply every matching rule that is not inactive to ``transaction`` in order.

    Returns the mutated copy and one execution record per matched (or failed)
    rule. Raises :class:`ConfigurationError` when ``transaction`` or ``rules``
    is ``None`` or the transaction cannot be validated. An empty rule set is
    valid and returns the transaction unchanged with no records.
    """

    tx = _to_transaction(transaction)
    prepared, rejected = _prepare_rules(rules)
    return _run(tx, prepared, rejected, now)


def process_batch(
    transactions: Iterable[TransactionInput],
    rules: Iterable[RuleInput],
    *,
    concurrency: int = 1,
    now: Callable[[], datetime] = _utcnow,
) -> list[ProcessResult]:
    """Process each transaction independently; results keep input order.

    Rules are validated and ordered once. With ``concurrency > 1``,
    transactions run on a thread pool; each transaction's own rule order and
    record order are unaffected.
    """

    if transactions is None:
        raise ConfigurationError("no transactions supplied")
    prepared, rejected = _prepare_rules(rules)
    txs = [_to_transaction(t) for t in transactions]
    return p_map(
        txs,
        lambda tx: _run(tx, prepared, rejected, now),
        concurrency=concurrency,
    )


def test_rule(rule: RuleInput, transaction: TransactionInput) -> RuleTestResult:
    """Dry-run one rule against one transaction. Never raises.

    The rule's ``status`` is ignored. On a match, ``result`` has the rule's
    actions applied; otherwise it is the transaction unchanged. Inputs that
    cannot be validated produce ``matches=False`` with ``error`` set.
    """

    try:
        r = rule if isinstance(rule, Rule) else Rule.model_validate(rule)
        tx = _to_transaction(transaction)
    except (ValidationError, ConfigurationError, TypeError) as e:
        return RuleTestResult(matches=False, result=transaction, error=str(e))

    try:
        matched = rule_matches(r, tx)
        result = apply_actions(r.actions, tx) if matched else tx
        return RuleTestResult(matches=matched, result=result)
    except Exception as e:  # noqa: BLE001 - preview must not crash
        logger.error("Dry run of rule %s failed: %s", r.id, e)
        return RuleTestResult(matches=False, result=tx, error=str(e))


class RuleEngine:
    """A rule set bound to the category/flag vocabulary it may assign.

    The vocabulary is external configuration (see :class:`RuleOptions`).
    With ``strict=True`` construction fails when any rule fails authoring
    validation against it; otherwise problems are logged as warnings.
    """

    def __init__(
        self,
        rules: Iterable[RuleInput],
        *,
        options: RuleOptions | None = None,
        strict: bool = False,
    ) -> None:
        self.options = options or RuleOptions()
        self._rules, self._rejected = _prepare_rules(rules)

        problems: list[str] = [f"rule {bad.rule_id}: {bad.reason}" for bad in self._rejected]
        for rule in self._rules:
            check = validate_rule(rule, self.options)
            problems.extend(f"rule {rule.id or rule.name}: {err}" for err in check.errors)
        if problems and strict:
            raise ConfigurationError("invalid rule set:\n" + "\n".join(problems))
        for p in problems:
            logger.warning(p)

    @property
    def rules(self) -> tuple[Rule, ...]:
        """Validated rules in evaluation order."""
        return tuple(self._rules)

    def process(self, transaction: TransactionInput) -> ProcessResult:
        return _run(_to_transaction(transaction), self._rules, self._rejected, _utcnow)

    def process_batch(
        self, transactions: Iterable[TransactionInput], *, concurrency: int = 1
    ) -> list[ProcessResult]:
        if transactions is None:
            raise ConfigurationError("no transactions supplied")
        txs = [_to_transaction(t) for t in transactions]
        return p_map(
            txs,
            lambda tx: _run(tx, self._rules, self._rejected, _utcnow),
            concurrency=concurrency,
        )

    def first_match(self, transaction: TransactionInput) -> Rule | None:
        return find_first_match(_to_transaction(transaction), self._rules, active_only=True)


__all__ = [
    "PREVIEW_TRANSACTION_ID",
    "RuleEngine",
    "process_batch",
    "process_transaction",
    "test_rule",
]
