"""Apply rule actions to a transaction, producing a new transaction.

- ``category`` and ``flag`` overwrite (last writer wins).
- ``memo`` appends the value after a single space, or sets it when the memo
  is empty. Reapplying the same memo action appends again.
- Unknown action types are skipped with a warning.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .logging_setup import get_logger
from .models import Action, Transaction

logger = get_logger("budget_rules.actions")


def apply_actions(actions: Iterable[Action], transaction: Transaction) -> Transaction:
    """Return a copy of ``transaction`` with ``actions`` applied in order."""

    updates: dict[str, Any] = {}
    memo = transaction.memo
    for action in actions:
        match action.type:
            case "category":
                updates["category"] = action.value
            case "flag":
                updates["flag"] = action.value
            case "memo":
                memo = f"{memo} {action.value}" if memo else action.value
                updates["memo"] = memo
            case _:
                logger.warning("Ignoring unknown action type %r (id=%s)", action.type, action.id)

    return transaction.model_copy(update=updates)


__all__ = ["apply_actions"]
