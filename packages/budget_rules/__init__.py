"""Public interface for the ``budget_rules`` package.

Transaction categorization rules: a field/operator/value predicate language,
AND/OR criteria combination, priority-ordered matching, and category, flag
and memo actions. This module only re-exports the stable import surface.
"""

from .actions import apply_actions
from .api import RuleEngine, process_batch, process_transaction, test_rule
from .errors import ConfigurationError, RuleEngineError
from .import_export import (
    export_rules,
    parse_rule_export,
    read_rules_export,
    validate_rule_export,
    write_rules_export,
)
from .matching import (
    filter_matching,
    find_first_match,
    get_category_for_transaction,
    rule_matches,
    sort_rules,
    status_rank,
)
from .models import (
    Action,
    AmountCriterion,
    Criterion,
    DateCriterion,
    ExecutionRecord,
    ProcessResult,
    Rule,
    RuleTestResult,
    StringCriterion,
    Transaction,
)
from .options import RuleOptions
from .predicates import evaluate_predicate
from .validation import RuleValidation, validate_rule

__all__ = [
    # Engine
    "evaluate_predicate",
    "rule_matches",
    "find_first_match",
    "get_category_for_transaction",
    "filter_matching",
    "sort_rules",
    "status_rank",
    "apply_actions",
    "process_transaction",
    "process_batch",
    "test_rule",
    "RuleEngine",
    # Import/export and validation
    "export_rules",
    "parse_rule_export",
    "validate_rule_export",
    "read_rules_export",
    "write_rules_export",
    "validate_rule",
    "RuleValidation",
    "RuleOptions",
    # Models / types
    "Action",
    "AmountCriterion",
    "Criterion",
    "DateCriterion",
    "StringCriterion",
    "Rule",
    "Transaction",
    "ExecutionRecord",
    "ProcessResult",
    "RuleTestResult",
    # Errors
    "ConfigurationError",
    "RuleEngineError",
]
