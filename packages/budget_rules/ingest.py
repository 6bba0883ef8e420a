"""Load transactions and rule sets from files for the CLI and batch callers.

Transactions come from a JSON array of objects or a CSV file whose header
names transaction fields (``id,payee,memo,amount,date,account`` plus any
extra columns, which are carried through untouched).

Rule sets come from either an export document (see
:mod:`budget_rules.import_export`) or a bare JSON array of rules. A bare
array is the engine's own rule set and keeps each rule's ``status``; an
export document goes through the import boundary and is forced inactive.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Mapping
from os import PathLike
from pathlib import Path
from typing import Any

from .import_export import parse_rule_export
from .models import Rule, Transaction


def _clean_csv_row(row: Mapping[str, Any]) -> dict[str, Any]:
    # Empty CSV cells mean "absent", not empty strings (amount would fail to parse).
    return {k: (v if v != "" else None) for k, v in row.items() if k}


def load_transactions(path: str | PathLike[str]) -> list[Transaction]:
    """Read transactions from ``.json`` or ``.csv``.

    Raises ``ValueError`` (including Pydantic ``ValidationError``) for content
    that is not a list of transactions, and ``csv.Error`` for a CSV without a
    header row.
    """

    p = Path(path)
    if p.suffix.lower() == ".csv":
        with p.open(encoding="utf-8", newline="") as f:
            reader = csv.DictReader(f)
            if not reader.fieldnames:
                raise csv.Error(f"CSV appears to have no header row: {path}")
            return [Transaction.model_validate(_clean_csv_row(r)) for r in reader]

    with p.open(encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, Mapping):
        data = data.get("transactions")
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array of transactions in {path}")
    return [Transaction.model_validate(item) for item in data]


def load_rule_set(path: str | PathLike[str]) -> list[Rule]:
    """Read a rule set from a bare JSON array or an export document."""

    text = Path(path).read_text(encoding="utf-8")
    data = json.loads(text)
    if isinstance(data, list):
        return [Rule.model_validate(item) for item in data]
    rules = parse_rule_export(text)
    if rules is None:
        raise ValueError(f"not a valid rule export: {path}")
    return rules


__all__ = ["load_rule_set", "load_transactions"]
