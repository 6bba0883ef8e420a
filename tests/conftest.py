"""Pytest configuration and shared fixtures.

The ``budget_rules`` package lives under ``packages/``; make sure it is
importable even when the project is not installed. Engine configuration is
read from ``BUDGET_RULES_*`` environment variables, so every test starts with
those cleared to stay hermetic.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR)] if p not in sys.path]

from budget_rules import Rule, Transaction  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BUDGET_RULES_CATEGORIES",
        "BUDGET_RULES_FLAGS",
        "BUDGET_RULES_LOG_FORMAT",
        "BUDGET_RULES_LOG_LEVEL",
        "BUDGET_RULES_MAX_WORKERS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_rule() -> Callable[..., Rule]:
    """Factory for rules with terse criteria/actions tuples.

    ``criteria`` items are ``(field, operator, value)``; ``actions`` items are
    ``(type, value)``. Remaining keyword arguments go straight to ``Rule``.
    """

    def _make(
        rule_id: str,
        criteria: Sequence[tuple[str, str, str]] = (),
        actions: Sequence[tuple[str, str]] = (),
        **kw: Any,
    ) -> Rule:
        return Rule.model_validate(
            {
                "id": rule_id,
                "name": kw.pop("name", f"Rule {rule_id}"),
                "criteria": [
                    {"id": f"{rule_id}-c{i}", "field": f, "operator": op, "value": v}
                    for i, (f, op, v) in enumerate(criteria)
                ],
                "actions": [
                    {"id": f"{rule_id}-a{i}", "type": t, "value": v}
                    for i, (t, v) in enumerate(actions)
                ],
                **kw,
            }
        )

    return _make


@pytest.fixture
def grocery_tx() -> Transaction:
    return Transaction(
        id="t1",
        payee="KROGER #442",
        memo="weekly shop",
        amount=54.12,
        date="2024-03-15T18:45:00",
        account="Checking Account",
    )
