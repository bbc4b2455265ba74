"""Utility modules for the policy kernel."""

from policy_kernel.utils.ids import IdGenerator, SequentialIdGenerator
from policy_kernel.utils.serialization import (
    canonicalize_json,
    decode_value,
    encode_value,
    hash_payload,
)

__all__ = [
    "IdGenerator",
    "SequentialIdGenerator",
    "canonicalize_json",
    "decode_value",
    "encode_value",
    "hash_payload",
]
