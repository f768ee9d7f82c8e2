from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal

import pytest
from pydantic import BaseModel

from memocache.keys import (
    canonicalize,
    derive_cache_key,
    describe_executor,
    normalize_text,
    serialize_arguments,
)


@dataclass
class _Point:
    x: int
    y: int


class _Query(BaseModel):
    text: str


class _Color(enum.IntEnum):
    RED = 1


def add(a, b):
    return a + b


def multiply(a, b):
    return a * b


def test_key_is_deterministic():
    assert derive_cache_key(add, [1, 2]) == derive_cache_key(add, [1, 2])


def test_argument_order_changes_key():
    assert derive_cache_key(add, [1, 2]) != derive_cache_key(add, [2, 1])


def test_different_executors_produce_different_keys():
    assert derive_cache_key(add, [1, 2]) != derive_cache_key(multiply, [1, 2])


def test_key_is_sha256_hex():
    key = derive_cache_key(add, ["x"])
    assert len(key) == 64
    int(key, 16)


def test_whitespace_is_collapsed_in_executor_text():
    assert derive_cache_key("select  *\n  from t", []) == derive_cache_key(
        "select * from t", []
    )


def test_missing_and_empty_arguments_are_equivalent():
    assert derive_cache_key(add) == derive_cache_key(add, [])


def test_executor_without_source_falls_back_to_qualified_name():
    assert describe_executor(len) == "builtins.len"


def test_executor_source_is_normalized():
    text = describe_executor(add)
    assert text.startswith("def add(a, b): return a + b")
    assert "\n" not in text


def test_normalize_text_strips_edges():
    assert normalize_text("  a \t b\n") == "a b"


def test_mixed_type_dict_keys_are_supported():
    key = derive_cache_key(add, [{1: "a", "b": 2}])
    assert key == derive_cache_key(add, [{"b": 2, 1: "a"}])


def test_tuple_and_list_arguments_differ():
    assert derive_cache_key(add, [(1, 2)]) != derive_cache_key(add, [[1, 2]])


def test_int_and_str_dict_keys_differ():
    assert derive_cache_key(add, [{1: "a"}]) != derive_cache_key(add, [{"1": "a"}])


def test_bool_and_int_differ():
    assert derive_cache_key(add, [True]) != derive_cache_key(add, [1])
    assert derive_cache_key(add, [1]) != derive_cache_key(add, [1.0])


def test_set_members_are_ordered_canonically():
    assert serialize_arguments([{"pear", "apple", "fig"}]) == serialize_arguments(
        [{"fig", "pear", "apple"}]
    )
    assert derive_cache_key(add, [{1, 2}]) != derive_cache_key(add, [frozenset({1, 2})])


def test_mixed_type_set_is_supported():
    assert serialize_arguments([{1, "1", None}]) == serialize_arguments(
        [{None, "1", 1}]
    )


def test_dataclass_and_model_arguments_use_field_values():
    assert derive_cache_key(add, [_Point(1, 2)]) == derive_cache_key(add, [_Point(1, 2)])
    assert derive_cache_key(add, [_Point(1, 2)]) != derive_cache_key(add, [_Point(2, 1)])
    assert derive_cache_key(add, [_Query(text="a")]) != derive_cache_key(
        add, [_Query(text="b")]
    )


def test_enum_arguments_are_tagged_by_type():
    assert canonicalize(_Color.RED) != canonicalize(1)


def test_address_based_repr_is_rejected():
    with pytest.raises(TypeError, match="stable representation"):
        derive_cache_key(add, [object()])


def test_stable_repr_objects_are_accepted():
    assert derive_cache_key(add, [Decimal("1.50")]) == derive_cache_key(
        add, [Decimal("1.50")]
    )
    assert derive_cache_key(add, [Decimal("1.50")]) != derive_cache_key(
        add, [Decimal("1.5")]
    )


def test_lone_surrogate_strings_are_hashable():
    assert derive_cache_key(add, ["\ud800"]) != derive_cache_key(add, ["\ud801"])
