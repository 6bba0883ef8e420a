# ruff: noqa: I001
"""CLI for the ``budget_rules`` package.

This module exposes callable command handlers (``cmd_process``,
``cmd_match``, ...) that return a process exit code, and a Typer-based
console interface wrapping them. A local ``.env`` is loaded with
``python-dotenv`` before any command runs so that ``BUDGET_RULES_*``
settings can live next to the data. Engine logic lives in
``budget_rules.api`` and related modules; this module only does file I/O
and output formatting.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging


# ---- Small module-level helpers used by CLI commands -------------------------


def _resolve_concurrency(requested: int | None) -> int:
    """Resolve the per-transaction worker count.

    An explicit ``--concurrency`` wins; otherwise ``BUDGET_RULES_MAX_WORKERS``
    is honored. The result is capped at 32 and never below 1.
    """

    import os

    from .pmap import MAX_CONCURRENCY

    if requested is None:
        env_val = os.getenv("BUDGET_RULES_MAX_WORKERS")
        try:
            requested = int(env_val) if env_val else 1
        except ValueError:
            requested = 1
    return max(1, min(requested, MAX_CONCURRENCY))


def _error(msg: str) -> int:
    print(f"Error: {msg}", file=sys.stderr)
    return 1


def _load_inputs(rules_path: str, transactions_path: str | None) -> tuple[list, list] | None:
    """Load a rule set and (optionally) transactions, reporting failures on stderr."""

    import csv

    from .ingest import load_rule_set, load_transactions

    try:
        rules = load_rule_set(rules_path)
    except FileNotFoundError:
        _error(f"File not found: {rules_path}")
        return None
    except (ValueError, OSError) as e:
        _error(f"Failed to load rules from '{rules_path}': {e}")
        return None

    transactions: list = []
    if transactions_path is not None:
        try:
            transactions = load_transactions(transactions_path)
        except FileNotFoundError:
            _error(f"File not found: {transactions_path}")
            return None
        except (ValueError, OSError, csv.Error) as e:
            _error(f"Failed to load transactions from '{transactions_path}': {e}")
            return None
    return rules, transactions


def _dump(obj: Any) -> str:
    return json.dumps(obj, indent=2, default=str)


# ---- Command handlers --------------------------------------------------------


def cmd_process(rules_path: str, transactions_path: str, *, concurrency: int | None = None) -> int:
    """Apply every matching rule that is not inactive to each transaction; print JSON.

    Output is a JSON array, one object per input transaction in input order,
    with ``transaction`` (the mutated copy) and ``executions`` (audit
    records). Returns ``0`` on success, ``1`` on input errors.
    """

    from .api import process_batch
    from .errors import ConfigurationError

    loaded = _load_inputs(rules_path, transactions_path)
    if loaded is None:
        return 1
    rules, transactions = loaded

    try:
        results = process_batch(transactions, rules, concurrency=_resolve_concurrency(concurrency))
    except ConfigurationError as e:
        return _error(str(e))

    payload = [
        {
            "transaction": r.transaction.model_dump(mode="json"),
            "executions": [e.to_dict() for e in r.executions],
        }
        for r in results
    ]
    print(_dump(payload))
    return 0


def cmd_match(rules_path: str, transactions_path: str) -> int:
    """First-match-wins lookup over active rules.

    Prints ``<id>\\t<rule name>\\t<category>`` per transaction (empty when no match).
    """

    from .matching import find_first_match, get_category_for_transaction

    loaded = _load_inputs(rules_path, transactions_path)
    if loaded is None:
        return 1
    rules, transactions = loaded

    for tx in transactions:
        rule = find_first_match(tx, rules, active_only=True)
        category = get_category_for_transaction(tx, rules) if rule is not None else None
        print(f"{tx.id or ''}\t{rule.name if rule else ''}\t{category or ''}")
    return 0


def cmd_test_rule(rules_path: str, rule_name: str, transactions_path: str) -> int:
    """Dry-run the rule named ``rule_name`` against each transaction."""

    from .api import test_rule

    loaded = _load_inputs(rules_path, transactions_path)
    if loaded is None:
        return 1
    rules, transactions = loaded

    rule = next((r for r in rules if r.name == rule_name), None)
    if rule is None:
        return _error(f"No rule named {rule_name!r} in {rules_path}")

    payload = []
    for tx in transactions:
        outcome = test_rule(rule, tx)
        payload.append(
            {
                "transactionId": tx.id,
                "matches": outcome.matches,
                "result": outcome.result.model_dump(mode="json"),
            }
        )
    print(_dump(payload))
    return 0


def cmd_validate(rules_path: str, *, options_path: str | None = None) -> int:
    """Report authoring problems per rule; non-zero exit when any rule is invalid."""

    from .options import RuleOptions
    from .validation import validate_rule

    try:
        options = RuleOptions.from_file(options_path) if options_path else RuleOptions.from_env()
    except (OSError, ValueError) as e:
        return _error(f"Failed to load options: {e}")

    try:
        raw = json.loads(Path(rules_path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return _error(f"File not found: {rules_path}")
    except (OSError, ValueError) as e:
        return _error(f"Failed to read rules from '{rules_path}': {e}")

    items = raw.get("rules") if isinstance(raw, dict) else raw
    if not isinstance(items, list):
        return _error(f"Expected a list of rules in {rules_path}")

    invalid = 0
    for pos, item in enumerate(items, start=1):
        name = item.get("name") if isinstance(item, dict) else None
        check = validate_rule(item if isinstance(item, dict) else {}, options)
        label = name or f"#{pos}"
        if check.ok:
            print(f"OK\t{label}")
            continue
        invalid += 1
        for err in check.errors:
            print(f"INVALID\t{label}\t{err}")
    return 1 if invalid else 0


def cmd_export(rules_path: str, out_path: str) -> int:
    """Write the rule set at ``rules_path`` as a portable export document."""

    from .import_export import write_rules_export

    loaded = _load_inputs(rules_path, None)
    if loaded is None:
        return 1
    rules, _ = loaded
    try:
        written = write_rules_export(out_path, rules)
    except OSError as e:
        return _error(f"Failed to write export '{out_path}': {e}")
    print(f"Exported {len(rules)} rule(s) to {written}", file=sys.stderr)
    return 0


def cmd_import(path: str) -> int:
    """Parse an export document and print the imported (inactive) rules as JSON."""

    from .import_export import read_rules_export

    rules = read_rules_export(path)
    if rules is None:
        return _error(f"Invalid rule import: {path}")
    print(_dump([r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in rules]))
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Evaluate transaction categorization rules: process transactions, preview a rule, "
        "and import/export rule sets. Loads BUDGET_RULES_* settings from a local .env."
    ),
)

# Module-level option objects (ruff B008: no calls in parameter defaults).
RULES_OPTION: OptionInfo = typer.Option(
    ...,
    "--rules",
    help="Rule set JSON: a bare array of rules or an export document.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # handlers report missing files themselves
)
TRANSACTIONS_OPTION: OptionInfo = typer.Option(
    ...,
    "--transactions",
    help="Transactions as a JSON array or a CSV with payee,memo,amount,date,account headers.",
    dir_okay=False,
    file_okay=True,
    exists=False,
)


@app.command("process")
def process_cmd(
    rules: Annotated[Path, RULES_OPTION],
    transactions: Annotated[Path, TRANSACTIONS_OPTION],
    *,
    concurrency: int | None = typer.Option(
        None, help="Transactions processed in parallel (default: BUDGET_RULES_MAX_WORKERS or 1)."
    ),
) -> None:
    """Apply every matching rule except inactive ones to each transaction (cumulative)."""

    raise typer.Exit(cmd_process(str(rules), str(transactions), concurrency=concurrency))


@app.command("match")
def match_cmd(
    rules: Annotated[Path, RULES_OPTION],
    transactions: Annotated[Path, TRANSACTIONS_OPTION],
) -> None:
    """Show the first matching rule and its category for each transaction."""

    raise typer.Exit(cmd_match(str(rules), str(transactions)))


@app.command("test-rule")
def test_rule_cmd(
    rules: Annotated[Path, RULES_OPTION],
    transactions: Annotated[Path, TRANSACTIONS_OPTION],
    *,
    name: str = typer.Option(..., "--name", help="Name of the rule to preview."),
) -> None:
    """Preview one rule against each transaction without side effects."""

    raise typer.Exit(cmd_test_rule(str(rules), name, str(transactions)))


@app.command("validate")
def validate_cmd(
    rules: Annotated[Path, RULES_OPTION],
    *,
    options: Path | None = typer.Option(
        None,
        "--options",
        help="JSON file with allowed categories/flags (default: BUDGET_RULES_CATEGORIES/FLAGS).",
    ),
) -> None:
    """Check each rule for authoring errors."""

    raise typer.Exit(cmd_validate(str(rules), options_path=str(options) if options else None))


@app.command("export")
def export_cmd(
    rules: Annotated[Path, RULES_OPTION],
    *,
    out: Path = typer.Option(..., "--out", help="Output file (or directory) for the export."),
) -> None:
    """Write a portable export of a rule set."""

    raise typer.Exit(cmd_export(str(rules), str(out)))


@app.command("import")
def import_cmd(
    file: Path = typer.Option(..., "--file", help="Export document to import."),
) -> None:
    """Validate an export document and print its rules (imported as inactive)."""

    raise typer.Exit(cmd_import(str(file)))


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (default: BUDGET_RULES_LOG_LEVEL or INFO)."
    ),
) -> None:
    """Root command: load ``.env`` and configure logging once."""

    # override=False keeps already-set environment variables
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m budget_rules.cli`
    app()
