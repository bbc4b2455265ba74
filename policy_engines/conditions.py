"""
policy_engines.conditions -- Condition evaluation and field resolution.

Responsibility:
    Decide whether a single ``(value, operator, target)`` predicate holds,
    resolve a field name against a ``TransactionContext``, and evaluate a
    conjunctive condition group.  Shared by trigger matching and rule-based
    monitoring.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import policy_kernel/domain/ types.

Invariants enforced:
    - Total: ``evaluate_condition`` never raises.  Absent values, values that
      do not parse as numbers, and unknown operators all yield ``False``.
    - Numeric operators compare ``Decimal`` operands, never floats.
    - A condition group is conjunctive; ``Condition.logic`` is ignored.
    - An empty group is vacuously true.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from decimal import Decimal, InvalidOperation
from typing import Any

from policy_kernel.domain.conditions import (
    Condition,
    ConditionOperator,
    TransactionContext,
    normalize_operator,
)

_COLLECTION_TYPES = (list, tuple, set, frozenset)

_FIELD_ACCESSORS: dict[str, Callable[[TransactionContext], Any]] = {
    "amount": lambda tx: tx.amount,
    "type": lambda tx: tx.type,
    "currency": lambda tx: tx.currency,
    "source": lambda tx: tx.source,
    "destination": lambda tx: tx.destination,
    "destinationType": lambda tx: tx.destination_type,
    "destination_type": lambda tx: tx.destination_type,
    "riskScore": lambda tx: tx.risk_score,
    "risk_score": lambda tx: tx.risk_score,
}


def resolve_field(tx: TransactionContext, field: str) -> Any:
    """Value of ``field`` on the transaction, falling back to metadata.

    Returns ``None`` when the field is neither a known attribute nor a
    metadata key.
    """
    accessor = _FIELD_ACCESSORS.get(field)
    if accessor is not None:
        return accessor(tx)
    return tx.metadata.get(field)


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if result.is_nan():
        return None
    return result


def _equals(value: Any, target: Any, expected: bool) -> bool:
    try:
        return (value == target) is expected
    except InvalidOperation:
        # signaling NaN refuses comparison
        return False


def _compare(value: Any, target: Any, op: Callable[[Decimal, Decimal], bool]) -> bool:
    left = _to_decimal(value)
    right = _to_decimal(target)
    if left is None or right is None:
        return False
    return op(left, right)


def evaluate_condition(
    value: Any,
    operator: ConditionOperator | str,
    target: Any,
) -> bool:
    """Apply ``operator`` to a resolved ``value`` and the condition ``target``.

    Args:
        value: The resolved field value (may be ``None``).
        operator: A ``ConditionOperator`` or its string spelling.
        target: The condition's comparison value.

    Returns:
        Whether the predicate holds.  Never raises.
    """
    op = normalize_operator(operator)

    if op == ConditionOperator.EQUALS:
        return _equals(value, target, expected=True)
    if op == ConditionOperator.NOT_EQUALS:
        return _equals(value, target, expected=False)
    if op == ConditionOperator.GREATER_THAN:
        return _compare(value, target, lambda a, b: a > b)
    if op == ConditionOperator.LESS_THAN:
        return _compare(value, target, lambda a, b: a < b)
    if op == ConditionOperator.GREATER_OR_EQUAL:
        return _compare(value, target, lambda a, b: a >= b)
    if op == ConditionOperator.LESS_OR_EQUAL:
        return _compare(value, target, lambda a, b: a <= b)
    if op == ConditionOperator.CONTAINS:
        if value is None or target is None:
            return False
        return str(target) in str(value)
    if op == ConditionOperator.IN:
        if not isinstance(target, _COLLECTION_TYPES):
            return False
        try:
            return value in target
        except (TypeError, InvalidOperation):
            # unhashable value against a set target, or a signaling NaN
            return False
    return False


def condition_matches(condition: Condition, tx: TransactionContext) -> bool:
    """Evaluate one condition against a transaction."""
    return evaluate_condition(
        resolve_field(tx, condition.field),
        condition.operator,
        condition.value,
    )


def evaluate_conditions(
    conditions: Iterable[Condition],
    tx: TransactionContext,
) -> bool:
    """True when every condition holds (conjunction; empty is true)."""
    return all(condition_matches(c, tx) for c in conditions)
