"""Tests for JSON storage of policy definitions (policy_kernel.utils.serialization)."""

from datetime import datetime, timezone
from decimal import Decimal

from policy_kernel.domain.conditions import Condition, ConditionOperator
from policy_kernel.utils.serialization import (
    canonicalize_json,
    condition_from_dict,
    condition_to_dict,
    decode_value,
    encode_value,
    hash_payload,
    step_from_dict,
    step_to_dict,
)
from tests.factories import make_step


class TestTaggedValues:

    def test_decimal_keeps_its_type(self):
        encoded = encode_value({"threshold": Decimal("100000.50")})

        assert encoded == {"threshold": {"$decimal": "100000.50"}}
        assert decode_value(encoded) == {"threshold": Decimal("100000.50")}

    def test_datetime_keeps_timezone(self):
        ts = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert decode_value(encode_value(ts)) == ts

    def test_tuples_come_back_as_lists(self):
        assert decode_value(encode_value(("IR", "KP"))) == ["IR", "KP"]


class TestDefinitionCodecs:

    def test_condition_with_decimal_value(self):
        condition = Condition("amount", "greater_than", Decimal("100000"))

        data = condition_to_dict(condition)
        restored = condition_from_dict(data)

        assert data["operator"] == "greater_than"
        assert restored == condition
        assert restored.operator is ConditionOperator.GREATER_THAN

    def test_unknown_operator_survives_storage(self):
        condition = Condition("amount", "between", [1, 2])
        assert condition_from_dict(condition_to_dict(condition)).operator == "between"

    def test_step(self):
        step = make_step(2, roles=("admin",), users=("cfo-7",), escalate_to=("admin",))
        assert step_from_dict(step_to_dict(step)) == step


class TestCanonicalForm:

    def test_key_order_does_not_matter(self):
        assert canonicalize_json({"b": 1, "a": 2}) == canonicalize_json({"a": 2, "b": 1})

    def test_decimal_normalized(self):
        assert hash_payload({"cap": Decimal("100.00")}) == hash_payload({"cap": Decimal("100")})
