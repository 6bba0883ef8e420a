from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from budget_rules import (
    AmountCriterion,
    DateCriterion,
    ExecutionRecord,
    Rule,
    StringCriterion,
    Transaction,
)


def _rule(*criteria):
    return Rule.model_validate({"name": "r", "criteria": list(criteria)})


def test_criteria_are_discriminated_by_field():
    rule = _rule(
        {"field": "memo", "operator": "regex", "value": "^rent"},
        {"field": "amount", "operator": "between", "value": "1,2"},
        {"field": "date", "operator": "after", "value": "2024-01-01"},
    )
    assert [type(c) for c in rule.criteria] == [StringCriterion, AmountCriterion, DateCriterion]


@pytest.mark.parametrize(
    ("field", "operator"),
    [("payee", "greater_than"), ("amount", "contains"), ("date", "starts_with"), ("memo", "after")],
)
def test_operator_invalid_for_field_is_rejected(field, operator):
    with pytest.raises(ValidationError):
        _rule({"field": field, "operator": operator, "value": "1"})


def test_unknown_field_is_rejected_with_field_error():
    with pytest.raises(ValidationError) as exc:
        _rule({"field": "category", "operator": "equals", "value": "x"})
    assert exc.value.errors()[0]["type"] == "criterion_field"


def test_legacy_type_key_is_accepted_for_field():
    rule = _rule({"type": "payee", "operator": "contains", "value": "shell"})
    assert rule.criteria[0].field == "payee"


def test_numeric_values_are_coerced_to_strings():
    rule = _rule({"field": "amount", "operator": "greater_than", "value": 100})
    assert rule.criteria[0].value == "100"


def test_rule_accepts_camel_case_keys_and_normalizes_enums():
    rule = Rule.model_validate(
        {"name": "r", "relationOperator": " or ", "status": "Inactive", "createdAt": "2024-01-01"}
    )
    assert rule.relation_operator == "OR"
    assert rule.status == "inactive"
    assert rule.created_at == datetime(2024, 1, 1)


def test_rule_defaults():
    rule = Rule(name="r")
    assert rule.criteria == []
    assert rule.actions == []
    assert rule.relation_operator == "AND"
    assert rule.status == "active"
    assert rule.priority is None


def test_transaction_is_frozen_and_keeps_extras():
    tx = Transaction.model_validate({"id": "t", "amount": "12.5", "importId": "YNAB:1"})
    assert tx.amount == 12.5
    assert tx.field_value("importId") == "YNAB:1"
    assert tx.field_value("missing") is None
    with pytest.raises(ValidationError):
        tx.category = "x"


def test_execution_record_serializes_camel_case():
    when = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    record = ExecutionRecord("r1", "t1", False, when, "boom")
    assert record.to_dict() == {
        "ruleId": "r1",
        "transactionId": "t1",
        "success": False,
        "errorMessage": "boom",
        "executedAt": "2024-05-01T12:00:00+00:00",
    }
