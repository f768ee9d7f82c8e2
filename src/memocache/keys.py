"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Deterministic cache key derivation for executors and their arguments.
"""

from __future__ import annotations

import dataclasses
import enum
import hashlib
import inspect
import json
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel

_WHITESPACE = re.compile(r"\s+")
_ADDRESS = re.compile(r"\bat 0x[0-9a-fA-F]+")


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def describe_executor(executor: Callable[..., Any] | str) -> str:
    """
    Return a stable, whitespace-collapsed textual form of an executor.

    Source text is preferred so edits to the computation change the key. When
    source is unavailable (builtins, REPL definitions) the qualified name is
    used instead.
    """
    if isinstance(executor, str):
        return normalize_text(executor)
    target = inspect.unwrap(executor)
    try:
        source = inspect.getsource(target)
    except (OSError, TypeError):
        module = getattr(target, "__module__", None) or ""
        name = getattr(target, "__qualname__", None) or type(target).__qualname__
        source = f"{module}.{name}" if module else name
    return normalize_text(source)


def _type_name(value: Any) -> str:
    cls = type(value)
    return f"{cls.__module__}.{cls.__qualname__}"


def _encode(node: Any) -> str:
    return json.dumps(node, ensure_ascii=True, separators=(",", ":"))


def canonicalize(value: Any) -> Any:
    """
    Convert one argument into a type-tagged, JSON-encodable tree.

    Every node carries its type so values that JSON would conflate (tuples
    and lists, ``1`` and ``"1"`` as dict keys, ``True`` and ``1``) stay
    distinct. Dict items and set members are ordered by their encoded form,
    which never depends on hash seeds or on keys being mutually comparable.

    Raises:
        TypeError: The value has no stable representation, for example an
            object whose ``repr`` embeds its memory address.
    """
    if value is None:
        return ["none"]
    if isinstance(value, bool):
        return ["bool", value]
    if isinstance(value, enum.Enum):
        return ["enum", _type_name(value), canonicalize(value.value)]
    if isinstance(value, int):
        return ["int", str(value)]
    if isinstance(value, float):
        return ["float", repr(value)]
    if isinstance(value, str):
        return ["str", value]
    if isinstance(value, (bytes, bytearray)):
        return ["bytes", bytes(value).hex()]
    if isinstance(value, tuple):
        return ["tuple", [canonicalize(item) for item in value]]
    if isinstance(value, list):
        return ["list", [canonicalize(item) for item in value]]
    if isinstance(value, (set, frozenset)):
        tag = "frozenset" if isinstance(value, frozenset) else "set"
        return [tag, sorted((canonicalize(item) for item in value), key=_encode)]
    if isinstance(value, Mapping):
        items = [[canonicalize(k), canonicalize(v)] for k, v in value.items()]
        items.sort(key=lambda pair: _encode(pair[0]))
        return ["dict", items]
    if isinstance(value, BaseModel):
        return ["model", _type_name(value), canonicalize(value.model_dump())]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {
            f.name: getattr(value, f.name) for f in dataclasses.fields(value)
        }
        return ["dataclass", _type_name(value), canonicalize(fields)]

    text = repr(value)
    if _ADDRESS.search(text):
        raise TypeError(
            f"Argument of type '{_type_name(value)}' has no stable representation; "
            "define __repr__ or pass an explicit cache key"
        )
    return ["repr", _type_name(value), text]


def serialize_arguments(arguments: Sequence[Any] | None) -> str:
    """Serialize positional arguments preserving their order."""
    return _encode([canonicalize(item) for item in arguments or ()])


def derive_cache_key(
    executor: Callable[..., Any] | str,
    arguments: Sequence[Any] | None = None,
) -> str:
    """Build a SHA-256 key over executor text plus ordered arguments."""
    payload = {
        "executor": describe_executor(executor),
        "arguments": serialize_arguments(arguments),
    }
    normalized = json.dumps(payload, ensure_ascii=True, sort_keys=True)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
