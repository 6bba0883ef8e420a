import json
import logging
from datetime import UTC, datetime

import pytest

from budget_rules import (
    Rule,
    export_rules,
    parse_rule_export,
    read_rules_export,
    validate_rule_export,
    write_rules_export,
)
from budget_rules.import_export import DEFAULT_EXPORT_FILENAME, EXPORT_VERSION

EXPORTED_AT = datetime(2024, 4, 2, 8, 0, tzinfo=UTC)


def _sample_rules(make_rule):
    return [
        make_rule(
            "r1",
            [("payee", "contains", "kroger"), ("amount", "between", "10,200")],
            [("category", "Groceries"), ("memo", "auto")],
            status="active",
            priority=1,
            description="Supermarket runs",
            created_at="2024-01-01T00:00:00Z",
            last_modified="2024-02-01T00:00:00Z",
        ),
        make_rule(
            "r2",
            [("date", "after", "2024-01-01"), ("memo", "regex", "^uber")],
            [("flag", "purple")],
            relation_operator="OR",
            status="pending",
        ),
    ]


def test_round_trip_preserves_rule_content_and_forces_inactive(make_rule):
    rules = _sample_rules(make_rule)
    imported = parse_rule_export(export_rules(rules, export_date=EXPORTED_AT))

    assert imported is not None
    assert len(imported) == len(rules)
    for original, copy in zip(rules, imported, strict=True):
        assert copy.name == original.name
        assert copy.criteria == original.criteria
        assert copy.actions == original.actions
        assert copy.relation_operator == original.relation_operator
        assert copy.priority == original.priority
        assert copy.status == "inactive"
        assert copy.id is None
        assert copy.created_at is None


def test_export_document_shape(make_rule):
    doc = json.loads(export_rules(_sample_rules(make_rule), export_date=EXPORTED_AT))

    assert doc["version"] == EXPORT_VERSION
    assert doc["exportDate"] == "2024-04-02T08:00:00+00:00"
    first = doc["rules"][0]
    assert {"id", "createdAt", "lastModified"}.isdisjoint(first)
    assert first["relationOperator"] == "AND"
    assert first["criteria"][0] == {
        "id": "r1-c0",
        "field": "payee",
        "operator": "contains",
        "value": "kroger",
    }
    assert "description" not in doc["rules"][1]


def test_invalid_json_returns_none_and_logs(caplog):
    caplog.set_level(logging.ERROR, logger="budget_rules")
    assert parse_rule_export("{not json") is None
    assert "Error parsing rule import" in caplog.text


def test_structurally_invalid_document_returns_none(caplog):
    caplog.set_level(logging.ERROR, logger="budget_rules")
    assert parse_rule_export(json.dumps({"version": "1.0", "rules": "nope"})) is None
    assert "Invalid rule import format" in caplog.text


def _doc(**rule_overrides):
    rule = {
        "name": "Coffee",
        "criteria": [{"id": "c1", "field": "payee", "operator": "contains", "value": "starbucks"}],
        "actions": [{"id": "a1", "type": "category", "value": "Dining"}],
        "relationOperator": "AND",
    }
    rule.update(rule_overrides)
    return {"version": "1.0", "exportDate": "2024-04-02T08:00:00Z", "rules": [rule]}


def test_validate_rule_export_accepts_minimal_document():
    assert validate_rule_export(_doc())
    assert validate_rule_export({"version": "1.0", "rules": []})


def test_validate_rule_export_rejections():
    assert not validate_rule_export({"rules": []})
    assert not validate_rule_export({"version": "", "rules": []})
    assert not validate_rule_export(_doc(name="   "))
    assert not validate_rule_export(_doc(criteria="payee"))
    assert not validate_rule_export(
        _doc(criteria=[{"field": "amount", "operator": "contains", "value": "1"}])
    )
    assert not validate_rule_export(_doc(actions=[{"type": "", "value": "Dining"}]))
    assert not validate_rule_export(_doc(relationOperator="XOR"))
    assert not validate_rule_export([])


def test_import_accepts_legacy_criterion_type_key():
    doc = _doc(criteria=[{"id": "c1", "type": "memo", "operator": "equals", "value": "rent"}])
    (rule,) = parse_rule_export(json.dumps(doc))
    assert rule.criteria[0].field == "memo"
    assert rule.status == "inactive"


def test_write_and_read_export_file(tmp_path, make_rule):
    rules = _sample_rules(make_rule)
    written = write_rules_export(tmp_path, rules, export_date=EXPORTED_AT)

    assert written == tmp_path / DEFAULT_EXPORT_FILENAME
    loaded = read_rules_export(written)
    assert [r.name for r in loaded] == [r.name for r in rules]
    assert all(isinstance(r, Rule) and r.status == "inactive" for r in loaded)

    explicit = write_rules_export(tmp_path / "mine.json", rules)
    assert explicit.name == "mine.json"


def test_read_missing_export_returns_none(tmp_path, caplog):
    caplog.set_level(logging.ERROR, logger="budget_rules")
    assert read_rules_export(tmp_path / "absent.json") is None
    assert "Error reading rule import" in caplog.text


MALFORMED_RULE_PARTS = [
    {"criteria": [{"field": ["payee"], "operator": "contains", "value": "a"}]},
    {"criteria": [{"field": {"name": "payee"}, "operator": "contains", "value": "a"}]},
    {"criteria": [{"type": ["memo"], "operator": "equals", "value": "rent"}]},
    {"criteria": [{"field": "payee", "operator": ["contains"], "value": "a"}]},
    {"criteria": [{"field": "payee", "operator": "contains", "value": {"text": "a"}}]},
    {"criteria": ["payee contains a"]},
    {"criteria": [None]},
    {"actions": [{"id": "a1", "type": "category", "value": None}]},
    {"actions": [{"id": "a1", "type": ["category"], "value": "Dining"}]},
    {"actions": ["category"]},
    {"name": ["Coffee"]},
    {"relationOperator": ["AND"]},
]


@pytest.mark.parametrize("overrides", MALFORMED_RULE_PARTS)
def test_malformed_shapes_are_rejected_without_raising(overrides):
    doc = _doc(**overrides)
    assert validate_rule_export(doc) is False
    assert parse_rule_export(json.dumps(doc)) is None


@pytest.mark.parametrize("rules", [[None], [["Coffee"]], [42], {"name": "Coffee"}])
def test_malformed_rule_entries_are_rejected(rules):
    doc = {"version": "1.0", "rules": rules}
    assert validate_rule_export(doc) is False
    assert parse_rule_export(json.dumps(doc)) is None


def test_unrecognized_status_is_imported_as_inactive():
    doc = _doc(status="archived")
    assert validate_rule_export(doc)
    (rule,) = parse_rule_export(json.dumps(doc))
    assert rule.status == "inactive"
