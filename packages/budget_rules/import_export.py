"""Portable JSON export/import of rule sets.

Export document shape::

    {"version": "1.0", "exportDate": "<ISO-8601>", "rules": [<rule>, ...]}

Each exported rule drops database identity and bookkeeping (``id``,
``lastModified``, ``createdAt``); it is a template, not a dump. Criteria
keep their own ids.

Import is a hard boundary: malformed JSON or a document that fails
validation yields ``None``/``False`` and an error log, never an exception.
Imported rules are always ``inactive`` so nothing starts mutating real
transactions until a user turns it on.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from os import PathLike
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .logging_setup import get_logger
from .models import Action, Criterion, RelationOperator, Rule

logger = get_logger("budget_rules.import_export")

EXPORT_VERSION = "1.0"
DEFAULT_EXPORT_FILENAME = "categorization-rules.json"

_EXPORT_EXCLUDE = {"id", "last_modified", "created_at"}


class _ExportModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


class ExportedRule(_ExportModel):
    """A rule as it appears in an export document (no identity fields)."""

    name: str = Field(min_length=1)
    description: str | None = None
    criteria: list[Criterion]
    actions: list[Action]
    relation_operator: RelationOperator = "AND"
    # Ignored on import; imported rules are always "inactive".
    status: str | None = None
    priority: int | None = None

    @field_validator("name")
    @classmethod
    def _name_non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("rule name must be non-empty")
        return v

    @field_validator("actions")
    @classmethod
    def _action_types_present(cls, v: list[Action]) -> list[Action]:
        for a in v:
            if not a.type:
                raise ValueError("every action needs a type")
        return v

    @field_validator("relation_operator", mode="before")
    @classmethod
    def _upper_relation(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v


class RuleExport(_ExportModel):
    """Top-level export document."""

    version: str = Field(min_length=1)
    export_date: str | None = None
    rules: list[ExportedRule]


def export_rules(rules: Iterable[Rule], *, export_date: datetime | None = None) -> str:
    """Serialize ``rules`` into the portable export JSON (pretty-printed)."""

    when = export_date or datetime.now(UTC)
    doc = {
        "version": EXPORT_VERSION,
        "exportDate": when.isoformat(),
        "rules": [
            r.model_dump(mode="json", by_alias=True, exclude=_EXPORT_EXCLUDE, exclude_none=True)
            for r in rules
        ],
    }
    return json.dumps(doc, indent=2)


def validate_rule_export(raw: Any) -> bool:
    """Return whether ``raw`` (already-decoded JSON) is a valid export document."""

    try:
        RuleExport.model_validate(raw)
    except ValidationError:
        return False
    return True


def parse_rule_export(text: str) -> list[Rule] | None:
    """Parse export JSON into engine rules, or ``None`` when invalid.

    Every returned rule has ``status="inactive"`` and no ``id``.
    """

    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error("Error parsing rule import: %s", e)
        return None

    try:
        doc = RuleExport.model_validate(raw)
    except ValidationError as e:
        logger.error("Invalid rule import format: %s", e)
        return None

    return [
        Rule(
            name=r.name,
            description=r.description,
            criteria=r.criteria,
            actions=r.actions,
            relation_operator=r.relation_operator,
            status="inactive",
            priority=r.priority,
        )
        for r in doc.rules
    ]


def write_rules_export(
    path: str | PathLike[str], rules: Iterable[Rule], *, export_date: datetime | None = None
) -> Path:
    """Write an export document to ``path`` (a directory gets the default file name)."""

    p = Path(path)
    if p.is_dir():
        p = p / DEFAULT_EXPORT_FILENAME
    p.write_text(export_rules(rules, export_date=export_date) + "\n", encoding="utf-8")
    return p


def read_rules_export(path: str | PathLike[str]) -> list[Rule] | None:
    """Read and parse an export file; ``None`` when unreadable or invalid."""

    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Error reading rule import %s: %s", path, e)
        return None
    return parse_rule_export(text)


__all__ = [
    "DEFAULT_EXPORT_FILENAME",
    "EXPORT_VERSION",
    "ExportedRule",
    "RuleExport",
    "export_rules",
    "parse_rule_export",
    "read_rules_export",
    "validate_rule_export",
    "write_rules_export",
]
