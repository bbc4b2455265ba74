"""
Condition and transaction context types (``policy_kernel.domain.conditions``).

Responsibility
--------------
Pure value objects shared by workflow triggers and monitoring rules: the
declarative ``Condition`` triple and the ``TransactionContext`` it is
evaluated against.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Evaluation lives
in ``policy_engines.conditions``.

Invariants enforced
-------------------
* Operators are normalized on construction: the long spellings
  ``greater_than_or_equals`` / ``less_than_or_equals`` map onto
  ``greater_or_equal`` / ``less_or_equal``.  Unrecognized operators are kept
  verbatim so the evaluator can treat them as non-matching.
* ``logic`` is carried for round-tripping only.  Conditions in one group
  are always conjunctive.
* Monetary amounts and risk scores are ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class ConditionOperator(str, Enum):
    """Comparison operators understood by the condition evaluator."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    CONTAINS = "contains"
    IN = "in"


class ConditionLogic(str, Enum):
    """Declared combinator.  Stored, never applied."""

    AND = "and"
    OR = "or"


OPERATOR_ALIASES: dict[str, ConditionOperator] = {
    "greater_than_or_equals": ConditionOperator.GREATER_OR_EQUAL,
    "less_than_or_equals": ConditionOperator.LESS_OR_EQUAL,
}


def normalize_operator(raw: ConditionOperator | str) -> ConditionOperator | str:
    """Map an operator spelling onto ``ConditionOperator`` when known."""
    if isinstance(raw, ConditionOperator):
        return raw
    if raw in OPERATOR_ALIASES:
        return OPERATOR_ALIASES[raw]
    try:
        return ConditionOperator(raw)
    except ValueError:
        return raw


@dataclass(frozen=True)
class Condition:
    """A single ``field operator value`` predicate."""

    field: str
    operator: ConditionOperator | str
    value: Any
    logic: ConditionLogic | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "operator", normalize_operator(self.operator))
        if isinstance(self.logic, str) and not isinstance(self.logic, ConditionLogic):
            object.__setattr__(self, "logic", ConditionLogic(self.logic))

    @property
    def is_known_operator(self) -> bool:
        return isinstance(self.operator, ConditionOperator)


@dataclass(frozen=True)
class TransactionContext:
    """The transaction being gated or monitored.

    Fields outside the fixed set are read from ``metadata`` by the field
    resolver (e.g. ``transaction_count_1h``, ``is_new_destination``).
    """

    id: str
    type: str
    amount: Decimal
    currency: str
    source: str | None = None
    destination: str | None = None
    destination_type: str | None = None
    risk_score: Decimal | None = None
    timestamp: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
