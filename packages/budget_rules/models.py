"""Data models and type aliases for ``budget_rules``.

Rules, criteria, actions and transactions arrive from outside the engine
(persistence layer, transaction source, JSON import) and are validated with
Pydantic at that boundary. Engine outputs (execution records and processing
results) are plain frozen dataclasses.

Criteria form a tagged union discriminated on ``field``. Each variant only
admits the operators that make sense for its field type, so an invalid
``(field, operator)`` pair is rejected when the criterion is constructed
rather than evaluating to ``False`` later.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Literal, TypeAlias

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Field/operator vocabulary
# ---------------------------------------------------------------------------

StringField = Literal["payee", "memo", "account"]
StringOperator = Literal["contains", "equals", "starts_with", "ends_with", "regex"]
AmountOperator = Literal["equals", "greater_than", "less_than", "between"]
DateOperator = Literal["equals", "after", "before", "between"]

RelationOperator = Literal["AND", "OR"]
RuleStatus = Literal["active", "inactive", "pending"]

STRING_FIELDS: frozenset[str] = frozenset({"payee", "memo", "account"})

# Valid operators per criterion field. Shared by the evaluator (to flag
# unrecognized pairs) and the authoring validator.
FIELD_OPERATORS: Mapping[str, frozenset[str]] = {
    "payee": frozenset({"contains", "equals", "starts_with", "ends_with", "regex"}),
    "memo": frozenset({"contains", "equals", "starts_with", "ends_with", "regex"}),
    "account": frozenset({"contains", "equals", "starts_with", "ends_with", "regex"}),
    "amount": frozenset({"equals", "greater_than", "less_than", "between"}),
    "date": frozenset({"equals", "after", "before", "between"}),
}

ACTION_TYPES: frozenset[str] = frozenset({"category", "flag", "memo"})


class _CamelModel(BaseModel):
    """Base for wire models: camelCase JSON keys, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        coerce_numbers_to_str=True,
    )


# ---------------------------------------------------------------------------
# Criteria (tagged union on ``field``)
# ---------------------------------------------------------------------------


class _CriterionBase(_CamelModel):
    id: str = ""
    value: str

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_type_key(cls, data: Any) -> Any:
        # Older exports named the field ``type``.
        if isinstance(data, Mapping) and "field" not in data and "type" in data:
            data = dict(data)
            data["field"] = data.pop("type")
        return data


class StringCriterion(_CriterionBase):
    """Case-insensitive text predicate over ``payee``, ``memo`` or ``account``."""

    field: StringField
    operator: StringOperator


class AmountCriterion(_CriterionBase):
    """Numeric predicate over ``amount`` (currency units, not minor units)."""

    field: Literal["amount"]
    operator: AmountOperator


class DateCriterion(_CriterionBase):
    """Calendar predicate over the transaction ``date``."""

    field: Literal["date"]
    operator: DateOperator


def _criterion_tag(data: Any) -> str | None:
    if isinstance(data, Mapping):
        name = data.get("field", data.get("type"))
    else:
        name = getattr(data, "field", None)
    if not isinstance(name, str):
        return None
    if name in STRING_FIELDS:
        return "string"
    if name in ("amount", "date"):
        return name
    return None


Criterion = Annotated[
    Annotated[StringCriterion, Tag("string")]
    | Annotated[AmountCriterion, Tag("amount")]
    | Annotated[DateCriterion, Tag("date")],
    Discriminator(
        _criterion_tag,
        custom_error_type="criterion_field",
        custom_error_message="criterion field must be one of payee, memo, account, amount, date",
    ),
]


# ---------------------------------------------------------------------------
# Actions and rules
# ---------------------------------------------------------------------------


class Action(_CamelModel):
    """A mutation applied when a rule matches.

    ``type`` is deliberately an open string: unknown types are skipped with a
    warning by the applicator instead of failing the whole rule.
    """

    id: str = ""
    type: str
    value: str


class Rule(_CamelModel):
    """A user-defined bundle of criteria and actions.

    Rules with no criteria never match. ``status="inactive"`` excludes the
    rule from batch processing; ``pending`` rules still run. Evaluation order is the total
    order ``(priority, created_at, id)`` with missing values sorting last.
    """

    id: str | None = None
    name: str
    description: str | None = None
    criteria: list[Criterion] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
    relation_operator: RelationOperator = "AND"
    status: RuleStatus = "active"
    priority: int | None = None
    created_at: datetime | None = None
    last_modified: datetime | None = None

    @field_validator("relation_operator", mode="before")
    @classmethod
    def _upper_relation(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class Transaction(BaseModel):
    """A read-only bank transaction as seen by the engine.

    Unknown keys from the transaction source are preserved (``extra="allow"``)
    and carried through to the mutated copy. The engine never mutates an
    instance; applying actions yields a new one via ``model_copy``.
    """

    model_config = ConfigDict(frozen=True, extra="allow", coerce_numbers_to_str=True)

    id: str | None = None
    payee: str | None = None
    memo: str | None = None
    amount: float | None = None
    date: str | None = None
    account: str | None = None
    category: str | None = None
    flag: str | None = None

    def field_value(self, name: str) -> Any:
        """Return the raw value of ``name`` (declared or extra), or ``None``."""

        if name in type(self).model_fields:
            return getattr(self, name)
        return (self.model_extra or {}).get(name)


Transactions: TypeAlias = Iterable[Transaction]
RuleSet: TypeAlias = Iterable[Rule]


# ---------------------------------------------------------------------------
# Engine outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExecutionRecord:
    """Append-only audit entry for one rule match attempt on one transaction."""

    rule_id: str | None
    transaction_id: str
    success: bool
    executed_at: datetime
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "transactionId": self.transaction_id,
            "success": self.success,
            "errorMessage": self.error_message,
            "executedAt": self.executed_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """The mutated transaction plus the execution records of one processing pass."""

    transaction: Transaction
    executions: tuple[ExecutionRecord, ...] = ()

    @property
    def applied_rule_ids(self) -> tuple[str | None, ...]:
        return tuple(e.rule_id for e in self.executions if e.success)

    @property
    def failed(self) -> tuple[ExecutionRecord, ...]:
        return tuple(e for e in self.executions if not e.success)


@dataclass(frozen=True, slots=True)
class RuleTestResult:
    """Outcome of a single-rule dry run.

    ``result`` is the transaction after applying the rule's actions when it
    matched, otherwise the transaction as given. ``error`` carries the reason
    when the inputs could not be evaluated at all.
    """

    matches: bool
    result: Transaction | Mapping[str, Any] | None
    error: str | None = None
