"""
Tests for the pure condition evaluator.

Tests cover:
- evaluate_condition: every operator, Decimal comparison, totality
  (absent values, unparseable numbers, unknown operators never raise)
- resolve_field: fixed fields, camelCase aliases, metadata fallback
- evaluate_conditions: conjunction, empty group, ``logic`` ignored
"""

from decimal import Decimal

import pytest

from policy_engines.conditions import (
    condition_matches,
    evaluate_condition,
    evaluate_conditions,
    resolve_field,
)
from policy_kernel.domain.conditions import (
    Condition,
    ConditionLogic,
    ConditionOperator,
    TransactionContext,
)


def _tx(amount="1000", **metadata) -> TransactionContext:
    return TransactionContext(
        id="tx-1",
        type="transfer",
        amount=Decimal(amount),
        currency="USD",
        destination="0xabc",
        destination_type="external",
        risk_score=Decimal("42"),
        metadata=metadata,
    )


# =========================================================================
# 1. evaluate_condition
# =========================================================================


class TestEqualityOperators:

    def test_equals_matches_same_value(self):
        assert evaluate_condition("external", ConditionOperator.EQUALS, "external") is True

    def test_equals_is_strict(self):
        assert evaluate_condition("External", "equals", "external") is False

    def test_not_equals(self):
        assert evaluate_condition("internal", "not_equals", "external") is True
        assert evaluate_condition("external", "not_equals", "external") is False

    def test_equals_absent_value_against_none(self):
        assert evaluate_condition(None, "equals", None) is True

    def test_boolean_equality(self):
        assert evaluate_condition(True, "equals", True) is True
        assert evaluate_condition(False, "equals", True) is False


class TestNumericOperators:

    @pytest.mark.parametrize(
        "value, operator, target, expected",
        [
            (Decimal("100001"), "greater_than", Decimal("100000"), True),
            (Decimal("100000"), "greater_than", Decimal("100000"), False),
            (Decimal("99999.99"), "less_than", Decimal("100000"), True),
            (Decimal("100000"), "greater_or_equal", Decimal("100000"), True),
            (Decimal("100000"), "less_or_equal", Decimal("100000"), True),
            (Decimal("100000.01"), "less_or_equal", Decimal("100000"), False),
        ],
    )
    def test_decimal_comparisons(self, value, operator, target, expected):
        assert evaluate_condition(value, operator, target) is expected

    def test_long_operator_spellings_are_aliases(self):
        assert evaluate_condition(Decimal("5"), "greater_than_or_equals", 5) is True
        assert evaluate_condition(Decimal("5"), "less_than_or_equals", 4) is False

    def test_mixed_numeric_types_compare_as_decimal(self):
        assert evaluate_condition(Decimal("0.3"), "greater_than", 0.1 + 0.1) is True
        assert evaluate_condition(12, "greater_than", "10") is True

    def test_absent_value_never_matches(self):
        assert evaluate_condition(None, "greater_than", 10) is False
        assert evaluate_condition(None, "less_than", 10) is False

    def test_unparseable_value_never_matches(self):
        assert evaluate_condition("not-a-number", "greater_than", 10) is False
        assert evaluate_condition(Decimal("5"), "less_than", "ten") is False

    def test_boolean_is_not_a_number(self):
        assert evaluate_condition(True, "greater_than", 0) is False

    def test_nan_never_matches(self):
        assert evaluate_condition(Decimal("NaN"), "greater_than", 0) is False
        assert evaluate_condition("NaN", "less_than", 0) is False


class TestCollectionOperators:

    def test_contains_substring(self):
        assert evaluate_condition("wire transfer", "contains", "wire") is True
        assert evaluate_condition("ach", "contains", "wire") is False

    def test_contains_absent_value(self):
        assert evaluate_condition(None, "contains", "wire") is False

    def test_in_list(self):
        assert evaluate_condition("IR", "in", ["IR", "KP"]) is True
        assert evaluate_condition("US", "in", ["IR", "KP"]) is False

    def test_in_requires_collection_target(self):
        assert evaluate_condition("I", "in", "IR") is False

    def test_in_with_unhashable_value_against_set(self):
        assert evaluate_condition(["IR"], "in", {"IR"}) is False


class TestUnknownOperator:

    def test_unknown_operator_is_false(self):
        assert evaluate_condition(1, "regex", ".*") is False

    def test_unknown_operator_kept_on_condition(self):
        condition = Condition("amount", "between", [1, 2])

        assert condition.operator == "between"
        assert condition.is_known_operator is False
        assert condition_matches(condition, _tx()) is False


# =========================================================================
# 2. resolve_field
# =========================================================================


class TestResolveField:

    def test_fixed_fields(self):
        tx = _tx()
        assert resolve_field(tx, "amount") == Decimal("1000")
        assert resolve_field(tx, "type") == "transfer"
        assert resolve_field(tx, "currency") == "USD"
        assert resolve_field(tx, "destination") == "0xabc"

    def test_camel_case_aliases(self):
        tx = _tx()
        assert resolve_field(tx, "destinationType") == "external"
        assert resolve_field(tx, "riskScore") == Decimal("42")

    def test_metadata_fallback(self):
        tx = _tx(transaction_count_1h=12)
        assert resolve_field(tx, "transaction_count_1h") == 12

    def test_missing_field_is_none(self):
        assert resolve_field(_tx(), "jurisdiction_risk") is None


# =========================================================================
# 3. evaluate_conditions
# =========================================================================


class TestEvaluateConditions:

    def test_all_conditions_must_hold(self):
        conditions = (
            Condition("is_new_destination", "equals", True),
            Condition("amount", "greater_than", Decimal("50000")),
        )
        assert evaluate_conditions(conditions, _tx("60000", is_new_destination=True)) is True
        assert evaluate_conditions(conditions, _tx("40000", is_new_destination=True)) is False
        assert evaluate_conditions(conditions, _tx("60000")) is False

    def test_empty_group_is_vacuously_true(self):
        assert evaluate_conditions((), _tx()) is True

    def test_or_logic_is_not_applied(self):
        conditions = (
            Condition("amount", "greater_than", Decimal("5000")),
            Condition("currency", "equals", "EUR", logic=ConditionLogic.OR),
        )
        # Only the amount holds; a disjunction would have matched.
        assert evaluate_conditions(conditions, _tx("6000")) is False
