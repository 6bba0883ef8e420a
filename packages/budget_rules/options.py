"""Category and flag vocabularies supplied to the engine as configuration.

The engine does not own the list of categories or flags a rule may assign;
the host application (a budget's category list, the user's flag colors)
provides them. Empty vocabularies mean "unrestricted".
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from os import PathLike
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

CATEGORIES_ENV = "BUDGET_RULES_CATEGORIES"
FLAGS_ENV = "BUDGET_RULES_FLAGS"


def _split_env_list(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(p.strip() for p in raw.split(",") if p.strip())


class RuleOptions(BaseModel):
    """Allowed values for ``category`` and ``flag`` actions."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    categories: tuple[str, ...] = ()
    flags: tuple[str, ...] = ()

    @field_validator("categories", "flags", mode="before")
    @classmethod
    def _accept_option_objects(cls, v: Any) -> Any:
        # Accept ``[{"value": ..., "label": ...}]`` option lists as well as plain strings.
        if isinstance(v, list | tuple):
            return tuple(item.get("value") if isinstance(item, Mapping) else item for item in v)
        return v

    def allows_category(self, value: str) -> bool:
        return not self.categories or value in self.categories

    def allows_flag(self, value: str) -> bool:
        return not self.flags or value in self.flags

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RuleOptions:
        """Build options from comma-separated ``BUDGET_RULES_CATEGORIES``/``_FLAGS``."""

        env = os.environ if environ is None else environ
        return cls(
            categories=_split_env_list(env.get(CATEGORIES_ENV)),
            flags=_split_env_list(env.get(FLAGS_ENV)),
        )

    @classmethod
    def from_file(cls, path: str | PathLike[str]) -> RuleOptions:
        """Load options from a JSON object with ``categories`` and ``flags`` keys."""

        with Path(path).open(encoding="utf-8") as f:
            return cls.model_validate(json.load(f))


__all__ = ["CATEGORIES_ENV", "FLAGS_ENV", "RuleOptions"]
